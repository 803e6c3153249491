from fastapi.testclient import TestClient

_GUIDE = (
    "## Decking\n\n"
    "Hardwood decking boards should be pre-drilled within 15mm of board ends to "
    "avoid splitting, and fixed with two screws per joist crossing."
)


def test_api_ask_documents_traces_metrics(monkeypatch) -> None:
    # Import after environment setup so the extractive answer mode is used.
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    from timber_kb.api.main import app

    with TestClient(app) as client:
        assert client.get("/health").json()["answer_mode"] == "extractive"
        assert client.get("/spans/summary").json()["total"] > 0

        owner = client.put("/users/owner-1", json={"organizationId": "org-1", "role": "owner"})
        assert owner.status_code == 200
        client.put("/users/worker-1", json={"organizationId": "org-1"})

        span_resp = client.post(
            "/ask", json={"userId": "owner-1", "question": "140x45 LVL bearer floor"}
        )
        assert span_resp.status_code == 200
        span_payload = span_resp.json()
        assert "2.8m max" in span_payload["answer"]
        assert span_payload["needsFollowUp"] is False
        assert span_payload["sources"] == [{"title": "Wesbeam E14 Guide"}]
        assert span_payload["parsedContext"]["memberType"] == "bearer"

        follow_resp = client.post(
            "/ask", json={"userId": "worker-1", "question": "3.6m span bearer"}
        )
        follow_payload = follow_resp.json()
        assert follow_payload["needsFollowUp"] is True
        merged_resp = client.post(
            "/ask",
            json={
                "userId": "worker-1",
                "question": "LVL for a floor",
                "priorParsedContext": follow_payload["parsedContext"],
            },
        )
        assert "3.9m max" in merged_resp.json()["answer"]

        forbidden = client.post(
            "/documents",
            json={"userId": "worker-1", "title": "Deck Guide", "content": _GUIDE},
        )
        assert forbidden.status_code == 403

        doc_resp = client.post(
            "/documents",
            json={"userId": "owner-1", "title": "Deck Guide", "content": _GUIDE},
        )
        assert doc_resp.status_code == 200
        doc_id = doc_resp.json()["docId"]
        assert doc_resp.json()["chunksCreated"] == 1

        listed = client.get("/documents", params={"userId": "worker-1"}).json()["items"]
        assert [item["docId"] for item in listed] == [doc_id]
        assert listed[0]["chunkCount"] == 1

        rag_resp = client.post(
            "/ask",
            json={"userId": "worker-1", "question": "pre-drilled hardwood boards and screws"},
        )
        rag_payload = rag_resp.json()
        assert rag_payload["sources"] == [{"title": "Deck Guide"}]
        assert "[Deck Guide]" in rag_payload["answer"]

        trace_resp = client.get(f"/traces/{rag_payload['traceId']}")
        assert trace_resp.status_code == 200
        assert trace_resp.json()["route"] == "rag"

        delete_resp = client.delete(f"/documents/{doc_id}", params={"userId": "owner-1"})
        assert delete_resp.json() == {"success": True, "deletedChunks": 1}
        missing = client.delete(f"/documents/{doc_id}", params={"userId": "owner-1"})
        assert missing.status_code == 404

        metrics = client.get("/metrics").json()
        assert metrics["total_requests"] >= 4
        assert metrics["routes"]["follow_up"] >= 1


def test_api_rejects_unknown_user_and_bad_context(monkeypatch) -> None:
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    from timber_kb.api.main import app

    with TestClient(app) as client:
        unknown = client.post("/ask", json={"userId": "nobody", "question": "LVL bearer"})
        assert unknown.status_code == 404

        client.put("/users/u-ctx", json={"organizationId": "org-2"})
        bad = client.post(
            "/ask",
            json={
                "userId": "u-ctx",
                "question": "LVL",
                "priorParsedContext": {"memberType": "girder"},
            },
        )
        assert bad.status_code == 422
