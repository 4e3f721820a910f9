import pytest
from httpx import AsyncClient
from shajara.routers import trees
from shajara.services.pdf_export_service import PdfExportService
from shajara.services.state_store import state_store

@pytest.fixture(autouse=True)
def clean_states():
    # User ids restart with every fresh database
    yield
    state_store._states.clear()

async def send(client: AsyncClient, phone: str, body: str) -> str:
    response = await client.post("/webhook", data={"From": phone, "Body": body})
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("application/xml")
    return response.text

async def add_first_member(client, phone, relation, name, year):
    await send(client, phone, "2")
    await send(client, phone, relation)
    await send(client, phone, name)
    return await send(client, phone, year)

@pytest.mark.asyncio
async def test_root(client: AsyncClient):
    response = await client.get("/")
    assert response.status_code == 200
    assert response.json() == {"message": "Family Tree Bot API is running"}

@pytest.mark.asyncio
async def test_webhook_hello(client: AsyncClient):
    # Simulate a "Hi" message from a new user
    text = await send(client, "whatsapp:+1234567890", "Hi")
    assert "Family Tree Bot" in text

@pytest.mark.asyncio
async def test_create_tree_flow(client: AsyncClient):
    phone = "whatsapp:+1234567891"

    text = await send(client, phone, "2")
    assert "Who are you adding?" in text

    text = await send(client, phone, "1")
    assert "Enter the full name of the father:" in text

    text = await send(client, phone, "Vali Karimov")
    assert "Enter the birth year" in text

    # First member of an implicit tree needs no relative
    text = await send(client, phone, "1960")
    assert "Added Vali Karimov to the tree!" in text

@pytest.mark.asyncio
async def test_invalid_year_keeps_step(client: AsyncClient):
    phone = "whatsapp:+1234567892"
    await send(client, phone, "2")
    await send(client, phone, "1")
    await send(client, phone, "Vali")

    text = await send(client, phone, "1850")
    assert "Invalid year" in text

    text = await send(client, phone, "1960")
    assert "Added Vali to the tree!" in text

@pytest.mark.asyncio
async def test_add_relative_flow(client: AsyncClient):
    phone = "whatsapp:+1234567893"
    await add_first_member(client, phone, "1", "Vali", "1960")

    await send(client, phone, "2")
    await send(client, phone, "4")
    await send(client, phone, "Ali")
    text = await send(client, phone, "1990")
    assert "Who is this child related to?" in text
    assert "1. Vali (1960)" in text

    text = await send(client, phone, "1")
    assert "Added Ali to the tree!" in text

    text = await send(client, phone, "1")
    assert "*Parents:*" in text
    assert "*Children:*" in text
    assert "Total relatives: 2" in text

@pytest.mark.asyncio
async def test_duplicate_relative_is_reported(client: AsyncClient):
    phone = "whatsapp:+1234567894"
    await add_first_member(client, phone, "1", "Vali", "1960")
    for _ in range(2):
        await send(client, phone, "2")
        await send(client, phone, "4")
        await send(client, phone, "Ali")
        await send(client, phone, "1990")
        text = await send(client, phone, "1")

    assert "already been added" in text
    text = await send(client, phone, "reset")
    assert "Family Tree Bot" in text

@pytest.mark.asyncio
async def test_incompatible_relation_asks_again(client: AsyncClient):
    phone = "whatsapp:+1234567895"
    await add_first_member(client, phone, "1", "Vali", "1960")

    await send(client, phone, "2")
    await send(client, phone, "3")  # sibling of a father
    await send(client, phone, "Bobur")
    await send(client, phone, "1962")
    text = await send(client, phone, "1")
    assert "cannot be linked" in text
    assert "Who are you adding?" in text

    # Name and year are kept; only the relation is asked again
    text = await send(client, phone, "5")
    assert "Who is this spouse related to?" in text
    text = await send(client, phone, "1")
    assert "Added Bobur to the tree!" in text

@pytest.mark.asyncio
async def test_view_empty(client: AsyncClient):
    text = await send(client, "whatsapp:+1234567896", "1")
    assert "You don't have a tree yet" in text

@pytest.mark.asyncio
async def test_tree_text_endpoint(client: AsyncClient):
    phone = "whatsapp:+1234567897"
    await add_first_member(client, phone, "1", "Vali", "1960")

    response = await client.get("/trees/1/text")
    assert response.status_code == 200
    payload = response.json()
    assert payload["tree_id"] == 1
    assert "Vali" in payload["text"]
    assert payload["stats"]["total_members"] == 1
    assert payload["stats"]["parents"] == 1

@pytest.mark.asyncio
async def test_tree_pdf_endpoint(client: AsyncClient):
    phone = "whatsapp:+1234567898"
    await add_first_member(client, phone, "1", "Vali", "1960")

    response = await client.get("/trees/1/pdf")
    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"
    assert response.content.startswith(b"%PDF")

@pytest.mark.asyncio
async def test_missing_tree_endpoints(client: AsyncClient):
    response = await client.get("/trees/42/text")
    assert response.status_code == 404
    assert response.json()["detail"]["kind"] == "NOT_FOUND"

    response = await client.get("/trees/42/pdf")
    assert response.status_code == 404

    response = await client.get("/merges/42")
    assert response.status_code == 404

@pytest.mark.asyncio
async def test_failed_pdf_export_cleans_up(client: AsyncClient, tmp_path, monkeypatch):
    phone = "whatsapp:+1234567899"
    await add_first_member(client, phone, "1", "Vali", "1960")
    export_dir = tmp_path / "export"
    export_dir.mkdir()

    async def broken_export(self, tree_id, output_path=None):
        (export_dir / f"tree_{tree_id}.pdf").write_bytes(b"%PDF-partial")
        raise RuntimeError("renderer crashed")

    monkeypatch.setattr(trees.tempfile, "mkdtemp", lambda: str(export_dir))
    monkeypatch.setattr(PdfExportService, "generate_tree_pdf", broken_export)

    with pytest.raises(RuntimeError):
        await client.get("/trees/1/pdf")
    assert not export_dir.exists()

    response = await client.get("/trees/42/pdf")
    assert response.status_code == 404
