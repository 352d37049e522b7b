import mongomock
import pytest
from bson import ObjectId
from fastapi.testclient import TestClient
from pymongo.errors import ServerSelectionTimeoutError

from auth import TokenService
from config import Settings
from database import DocumentStore
from errors import Conflict, InternalError, NotFound
from main import create_app
from services import CategoryService, CommentService, ProductService, UserService


class UnreachableDatabase:
    name = "unreachable"

    def __getitem__(self, collection):
        raise ServerSelectionTimeoutError("no servers available")

    def list_collection_names(self):
        raise ServerSelectionTimeoutError("no servers available")


@pytest.fixture
def store():
    return DocumentStore(mongomock.MongoClient()["services_test"])


def test_store_failures_become_internal_errors():
    categories = CategoryService(DocumentStore(UnreachableDatabase()))
    with pytest.raises(InternalError) as exc:
        categories.list()
    assert exc.value.message == "Internal server error."


def test_store_failures_are_not_leaked_over_http():
    app = create_app(Settings(jwt_secret="test-secret"), UnreachableDatabase())
    with TestClient(app) as client:
        response = client.get("/api/categories")
    assert response.status_code == 500
    assert response.json() == {"detail": "Internal server error."}


def test_register_conflict_from_unique_index(store, monkeypatch):
    store.ensure_indexes()
    users = UserService(store, TokenService("test-secret"))
    store.insert("user", {"name": "Ann Lee", "email": "ann@x.com", "password": "x"})
    # a concurrent registration slipped past the existence check
    monkeypatch.setattr(store, "find_one", lambda *args, **kwargs: None)
    with pytest.raises(Conflict):
        users.register({"name": "Ann Lee", "email": "ann@x.com", "password": "secret"})
    assert len(store.find("user")) == 1


def test_seed_admin_promotes_existing_user(store):
    users = UserService(store, TokenService("test-secret"))
    users.register({"name": "Ann Lee", "email": "ann@x.com", "password": "secret"})
    users.seed_admin("Ann Lee", "ann@x.com", "ignored")
    users.seed_admin("Ann Lee", "ann@x.com", "ignored")
    found = store.find("user")
    assert len(found) == 1
    assert found[0]["isAdmin"] is True


def test_deleted_category_drops_out_of_products(store):
    categories = CategoryService(store)
    products = ProductService(store)
    fiction = categories.create({"name": "Fiction"})
    product = products.create(
        {"title": "Dune", "author": "Frank Herbert", "description": "Saga", "category": [fiction["id"]]}
    )
    categories.delete(fiction["id"])
    assert products.get(product["id"])["category"] == []


def test_comment_update_keeps_identity_and_date(store):
    products = ProductService(store)
    comments = CommentService(store)
    product = products.create({"title": "Dune", "author": "Frank Herbert", "description": "Saga"})
    added = comments.add(product["id"], {"text": "hi", "likeCount": 2, "username": "joe", "userId": str(ObjectId())})
    original = added["comment"]

    updated = comments.update(product["id"], original["id"], {"userId": str(ObjectId())})
    comment = updated["comments"][0]
    assert comment == {**original, "text": None, "likeCount": 0, "username": None}


def test_comment_lookup_by_malformed_id(store):
    products = ProductService(store)
    comments = CommentService(store)
    product = products.create({"title": "Dune", "author": "Frank Herbert", "description": "Saga"})
    with pytest.raises(NotFound) as exc:
        comments.delete(product["id"], "not-an-id")
    assert exc.value.message == "Comment not found."
