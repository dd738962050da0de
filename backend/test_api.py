"""
HTTP-level tests: camelCase payloads, the {"error": ...} body and the routes
that only exist at the API layer (catalog, settings, dashboard, reports).
"""
import pytest


async def create_company(client, state="Karnataka", name="Sharma Stores"):
    response = await client.post("/companies", json={"name": name, "state": state})
    assert response.status_code == 200
    return response.json()


async def create_customer(client, company_id, name="Ravi Kumar", phone="+919811111111", state="Karnataka"):
    response = await client.post("/customers", json={
        "companyId": company_id, "name": name, "phone": phone, "state": state
    })
    assert response.status_code == 200
    return response.json()


async def create_credit_invoice(client, company_id, customer_id, unit_price=1000):
    response = await client.post("/invoices", json={
        "companyId": company_id,
        "customerId": customer_id,
        "paymentMode": "Credit",
        "items": [{"productName": "Consulting", "quantity": 1, "unitPrice": unit_price, "taxRate": 18}],
    })
    assert response.status_code == 200
    return response.json()


async def balance_for(client, company_id):
    response = await client.get("/balances", params={"companyId": company_id})
    return response.json()[0]


async def test_health(client):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "database": "sqlite"}


async def test_company_id_required(client):
    for path in ("/products", "/customers", "/invoices", "/balances", "/dashboard/stats", "/messaging-settings"):
        response = await client.get(path)
        assert response.status_code == 400, path
        assert response.json() == {"error": "Company ID required"}


async def test_unknown_ids_are_404(client):
    assert (await client.get("/invoices/999")).json() == {"error": "Invoice not found"}
    assert (await client.get("/balances/999")).status_code == 404
    assert (await client.get("/products", params={"companyId": 999})).json() == {"error": "Company not found"}

    response = await client.put("/customers/999", json={"name": "Nobody"})
    assert response.status_code == 404

    response = await client.post("/balances/999/payment", json={"paymentAmount": 10})
    assert response.status_code == 404
    assert response.json() == {"error": "Balance not found"}


async def test_malformed_body_is_400(client):
    company = await create_company(client)

    response = await client.post("/invoices", json={
        "companyId": company["id"],
        "items": [{"productName": "Pen", "quantity": 0, "unitPrice": 10, "taxRate": 18}],
    })

    assert response.status_code == 400
    assert "error" in response.json()


async def test_unknown_payment_mode_is_400(client):
    company = await create_company(client)

    response = await client.post("/invoices", json={
        "companyId": company["id"],
        "paymentMode": "Cheque",
        "items": [{"productName": "Pen", "quantity": 1, "unitPrice": 10, "taxRate": 18}],
    })

    assert response.status_code == 400


async def test_company_update(client):
    company = await create_company(client)

    response = await client.put(f"/companies/{company['id']}", json={"gstin": "29AAAAA0000A1Z5"})

    assert response.status_code == 200
    assert response.json()["gstin"] == "29AAAAA0000A1Z5"
    assert response.json()["state"] == "Karnataka"

    companies = (await client.get("/companies")).json()
    assert [c["id"] for c in companies] == [company["id"]]


async def test_product_lifecycle(client):
    company = await create_company(client)
    payload = {"companyId": company["id"], "sku": "PCR-001", "name": "Toothpaste", "unitPrice": 95, "stock": 10}

    response = await client.post("/products", json=payload)
    assert response.status_code == 200
    product = response.json()
    assert product["taxRate"] == 18.0
    assert product["isActive"] is True

    duplicate = await client.post("/products", json=payload)
    assert duplicate.status_code == 400
    assert "PCR-001" in duplicate.json()["error"]

    response = await client.put(f"/products/{product['id']}", json={"unitPrice": 99})
    assert response.json()["unitPrice"] == 99.0

    response = await client.delete(f"/products/{product['id']}")
    assert response.json() == {"success": True}

    products = (await client.get("/products", params={"companyId": company["id"]})).json()
    assert products == []


async def test_deleted_product_stays_on_invoices(client):
    company = await create_company(client)
    response = await client.post("/products", json={
        "companyId": company["id"], "sku": "PCR-001", "name": "Toothpaste", "unitPrice": 95, "stock": 10
    })
    product = response.json()

    response = await client.post("/invoices", json={
        "companyId": company["id"],
        "items": [{"productId": product["id"], "quantity": 2, "unitPrice": 95, "taxRate": 18}],
    })
    assert response.status_code == 200
    invoice = response.json()

    response = await client.delete(f"/products/{product['id']}")
    assert response.json() == {"success": True}

    detail = (await client.get(f"/invoices/{invoice['id']}")).json()
    assert detail["items"][0]["productId"] == product["id"]
    assert detail["items"][0]["productName"] == "Toothpaste"

    products = (await client.get("/products", params={"companyId": company["id"]})).json()
    assert products == []


async def test_customer_with_balances_cannot_be_deleted(client):
    company = await create_company(client)
    debtor = await create_customer(client, company["id"])
    other = await create_customer(client, company["id"], name="Anil", phone=None)
    await create_credit_invoice(client, company["id"], debtor["id"])

    response = await client.delete(f"/customers/{debtor['id']}")
    assert response.status_code == 400
    assert response.json() == {"error": "Cannot delete customer with existing balances"}

    response = await client.delete(f"/customers/{other['id']}")
    assert response.json() == {"success": True}

    customers = (await client.get("/customers", params={"companyId": company["id"]})).json()
    assert [c["name"] for c in customers] == ["Ravi Kumar"]


async def test_invoice_round_trip(client):
    company = await create_company(client)
    customer = await create_customer(client, company["id"], state="Tamil Nadu")

    invoice = await create_credit_invoice(client, company["id"], customer["id"])

    assert invoice["invoiceNo"] == "INV-001"
    assert invoice["igstAmount"] == 180.0
    assert invoice["totalAmount"] == 1180.0
    assert invoice["status"] == "Pending"
    assert invoice["paymentMode"] == "Credit"
    assert invoice["company"]["name"] == "Sharma Stores"
    assert invoice["items"][0]["lineTotal"] == 1180.0

    listed = (await client.get("/invoices", params={"companyId": company["id"]})).json()
    assert listed[0]["customer"]["name"] == "Ravi Kumar"

    detail = (await client.get(f"/invoices/{invoice['id']}")).json()
    assert detail["items"][0]["productName"] == "Consulting"


async def test_payment_flow(client):
    company = await create_company(client)
    customer = await create_customer(client, company["id"])
    await create_credit_invoice(client, company["id"], customer["id"])
    balance = await balance_for(client, company["id"])

    assert balance["customer"]["name"] == "Ravi Kumar"
    assert balance["invoice"]["invoiceNo"] == "INV-001"

    response = await client.post(f"/balances/{balance['id']}/payment", json={"paymentAmount": 180, "paymentMode": "UPI"})
    assert response.status_code == 200
    body = response.json()
    assert body["balance"]["pendingAmount"] == 1000.0
    assert body["balance"]["status"] == "Partially Paid"
    assert body["payment"]["paymentMode"] == "UPI"

    response = await client.post(f"/balances/{balance['id']}/payment", json={"paymentAmount": 5000})
    assert response.status_code == 400
    assert "exceeds" in response.json()["error"]

    detail = (await client.get(f"/balances/{balance['id']}")).json()
    assert len(detail["payments"]) == 1
    assert detail["reminders"] == []

    count = (await client.get("/balances/pending/count", params={"companyId": company["id"]})).json()
    assert count == {"count": 1}

    by_customer = (await client.get(f"/balances/customer/{customer['id']}")).json()
    assert [b["id"] for b in by_customer] == [balance["id"]]


async def test_manual_balance(client):
    company = await create_company(client)
    customer = await create_customer(client, company["id"])

    response = await client.post("/balances", json={
        "companyId": company["id"], "customerId": customer["id"], "totalAmount": 500, "paidAmount": 100
    })

    assert response.status_code == 200
    assert response.json()["pendingAmount"] == 400.0
    assert response.json()["status"] == "Partially Paid"


async def test_messaging_settings_are_redacted(client):
    company = await create_company(client)
    params = {"companyId": company["id"]}

    defaults = (await client.get("/messaging-settings", params=params)).json()
    assert defaults["provider"] == "none"
    assert defaults["autoRemindersEnabled"] is False
    assert defaults["reminderFrequencyDays"] == 3

    response = await client.post("/messaging-settings", json={
        "companyId": company["id"],
        "provider": "twilio",
        "twilioAccountSid": "AC123",
        "twilioAuthToken": "super-secret",
        "twilioPhoneNumber": "+14155238886",
        "autoRemindersEnabled": True,
        "reminderFrequencyDays": 5,
    })
    assert response.status_code == 200
    saved = response.json()
    assert saved["twilioConfigured"] is True
    assert saved["metaConfigured"] is False
    assert "twilioAuthToken" not in saved
    assert "super-secret" not in response.text

    # Saving again without the token keeps the stored one
    response = await client.post("/messaging-settings", json={
        "companyId": company["id"],
        "provider": "twilio",
        "twilioAccountSid": "AC123",
        "twilioPhoneNumber": "+14155238886",
        "autoRemindersEnabled": False,
        "reminderFrequencyDays": 7,
    })
    fetched = (await client.get("/messaging-settings", params=params)).json()
    assert fetched["twilioConfigured"] is True
    assert fetched["reminderFrequencyDays"] == 7
    assert fetched["autoRemindersEnabled"] is False
    assert "super-secret" not in response.text


async def test_send_reminder_without_configuration(client):
    company = await create_company(client)
    customer = await create_customer(client, company["id"])
    await create_credit_invoice(client, company["id"], customer["id"])
    balance = await balance_for(client, company["id"])

    response = await client.post(f"/balances/{balance['id']}/send-reminder")

    assert response.status_code == 400
    assert response.json() == {"error": "WhatsApp not configured. Please configure in Settings."}


async def test_auto_reminders_endpoint(client):
    company = await create_company(client)

    response = await client.post("/balances/send-auto-reminders", json={})
    assert response.status_code == 400
    assert response.json() == {"error": "Company ID required"}

    response = await client.post("/balances/send-auto-reminders", json={"companyId": company["id"]})
    assert response.status_code == 200
    assert response.json() == {"message": "Auto reminders not enabled", "sent": 0, "failed": 0, "results": []}


async def test_import_endpoint(client):
    company = await create_company(client)

    response = await client.post("/balances/import", json={
        "companyId": company["id"],
        "data": [
            {"customerName": "Asha", "phone": 9876543210, "amount": 1180},
            {"customerName": "", "amount": 50},
        ],
    })

    assert response.status_code == 200
    body = response.json()
    assert body["success"] == 1
    assert body["failed"] == 1
    assert body["errors"][0]["row"] == 2
    assert body["created"][0]["invoiceNo"] == "INV-001"

    balance = await balance_for(client, company["id"])
    assert balance["pendingAmount"] == 1180.0


async def test_import_unparsable_amount_fails_only_its_row(client):
    company = await create_company(client)

    response = await client.post("/balances/import", json={
        "companyId": company["id"],
        "data": [
            {"customerName": "Asha", "amount": "1180"},
            {"customerName": 12345, "amount": "1,180.00"},
        ],
    })

    assert response.status_code == 200
    body = response.json()
    assert body["success"] == 1
    assert body["failed"] == 1
    assert body["errors"][0]["row"] == 2
    assert body["errors"][0]["customerName"] == "12345"
    assert body["errors"][0]["error"] == "Amount must be a number"
    assert body["created"][0]["amount"] == 1180.0


async def test_dashboard_and_gst_report(client):
    company = await create_company(client)
    local = await create_customer(client, company["id"])
    remote = await create_customer(client, company["id"], name="Meena Traders", phone="+919822222222", state="Tamil Nadu")
    await client.post("/products", json={"companyId": company["id"], "sku": "A1", "name": "Pen", "unitPrice": 10})
    await create_credit_invoice(client, company["id"], local["id"], unit_price=100)
    await create_credit_invoice(client, company["id"], remote["id"], unit_price=200)

    stats = (await client.get("/dashboard/stats", params={"companyId": company["id"]})).json()
    assert stats == {"todaySales": "354.00", "totalInvoices": 2, "totalProducts": 1, "totalCustomers": 2}

    report = (await client.get("/reports/gst", params={"companyId": company["id"]})).json()
    assert report == {"cgst": 9.0, "sgst": 9.0, "igst": 36.0, "total": 354.0}

    empty = (await client.get("/reports/gst", params={
        "companyId": company["id"], "startDate": "2000-01-01", "endDate": "2000-12-31"
    })).json()
    assert empty == {"cgst": 0.0, "sgst": 0.0, "igst": 0.0, "total": 0.0}


@pytest.mark.parametrize("path", ["/nope", "/invoices/abc"])
async def test_routing_errors_use_error_body(client, path):
    response = await client.get(path)

    assert response.status_code in (400, 404)
    assert "error" in response.json()
