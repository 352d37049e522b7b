"""
Entity services

Each service validates a payload, talks to the DocumentStore and hands back
JSON-ready dicts. Errors surface as CatalogError subclasses; anything else is
logged and reported as InternalError by ``guarded``.

Comments are owned by their product. They are only ever written through the
product document, using the store's atomic array operations so that two
concurrent comment writes on the same product cannot overwrite each other.
"""

import logging
from typing import Any, Dict, List, Optional

from bson import ObjectId
from pydantic.networks import validate_email
from pymongo.errors import DuplicateKeyError

from auth import TokenService, hash_password, verify_password
from database import DocumentStore, parse_object_id, serialize
from errors import Conflict, InvalidCredentials, InvalidId, NotFound, guarded
from schemas import Category, Comment, Product, User, utcnow
from validation import (
    validate_category,
    validate_comment,
    validate_comment_update,
    validate_login,
    validate_product,
    validate_register,
)

logger = logging.getLogger(__name__)

PUBLIC_USER_FIELDS = {"_id": 0, "name": 1, "email": 1}


def _load(store: DocumentStore, collection: str, raw_id: Any, missing: str) -> dict:
    oid = parse_object_id(raw_id)
    doc = store.get(collection, oid) if oid is not None else None
    if doc is None:
        raise NotFound(missing)
    return doc


class CategoryService:
    NOT_FOUND = "Category not found."

    def __init__(self, store: DocumentStore):
        self.store = store

    @guarded
    def list(self) -> List[dict]:
        return serialize(self.store.find("category"))

    @guarded
    def get(self, category_id: str) -> dict:
        return serialize(_load(self.store, "category", category_id, self.NOT_FOUND))

    @guarded
    def create(self, payload: Any) -> dict:
        data = validate_category(payload)
        doc = self.store.insert("category", Category(name=data.name, imageUrl=data.imageUrl))
        logger.info("Created category %s", doc["_id"])
        return serialize(doc)

    @guarded
    def update(self, category_id: str, payload: Any) -> dict:
        current = _load(self.store, "category", category_id, self.NOT_FOUND)
        data = validate_category(payload)
        doc = self.store.update_fields("category", current["_id"], {"name": data.name})
        if doc is None:
            raise NotFound(self.NOT_FOUND)
        logger.info("Updated category %s", doc["_id"])
        return serialize(doc)

    @guarded
    def delete(self, category_id: str) -> dict:
        oid = parse_object_id(category_id)
        doc = self.store.delete("category", oid) if oid is not None else None
        if doc is None:
            raise NotFound(self.NOT_FOUND)
        logger.info("Deleted category %s", oid)
        return serialize(doc)


class ProductService:
    NOT_FOUND = "Product not found."

    def __init__(self, store: DocumentStore):
        self.store = store

    def _resolve_categories(self, products: List[dict], fields: Optional[List[str]] = None) -> List[dict]:
        """Swap category ids for the category documents they point at.

        With ``fields`` only those keys of each category are kept. Ids whose
        category has since been deleted are dropped.
        """
        ids = [ref for product in products for ref in product.get("category") or []]
        found = self.store.find_by_ids("category", ids)
        if fields is not None:
            found = {oid: {k: doc.get(k) for k in fields} for oid, doc in found.items()}
        for product in products:
            product["category"] = [found[ref] for ref in product.get("category") or [] if ref in found]
        return products

    @staticmethod
    def _category_ids(refs: Optional[List[Any]]) -> List[ObjectId]:
        ids = []
        for ref in refs or []:
            oid = parse_object_id(ref)
            if oid is None:
                raise InvalidId()
            ids.append(oid)
        return ids

    @staticmethod
    def _seed_comments(comments: Optional[List[Any]]) -> List[Any]:
        # Stored as supplied; dict entries only get a date and an ObjectId _id so they stay addressable.
        seeded = []
        for comment in comments or []:
            if isinstance(comment, dict):
                comment = {"date": utcnow(), **comment, "_id": parse_object_id(comment.get("_id")) or ObjectId()}
            seeded.append(comment)
        return seeded

    @guarded
    def list(self) -> List[dict]:
        products = self.store.find("product", projection={"isActive": 0})
        for product in products:
            for comment in product.get("comments") or []:
                if isinstance(comment, dict):
                    comment.pop("_id", None)
        return serialize(self._resolve_categories(products))

    @guarded
    def get(self, product_id: str) -> dict:
        product = _load(self.store, "product", product_id, self.NOT_FOUND)
        self._resolve_categories([product], ["name"])
        return serialize(product)

    @guarded
    def get_by_category(self, category_id: str) -> List[dict]:
        oid = parse_object_id(category_id)
        if oid is None:
            raise InvalidId()
        products = self.store.find("product", {"category": oid})
        if not products:
            raise NotFound("No products found for the specified category.")
        return serialize(self._resolve_categories(products))

    @guarded
    def create(self, payload: Any) -> dict:
        data = validate_product(payload)
        product = Product(
            title=data.title,
            author=data.author,
            description=data.description,
            imageUrl=data.imageUrl,
            videoUrl=data.videoUrl,
            isActive=data.isActive,
            category=self._category_ids(data.category),
            comments=self._seed_comments(data.comments),
        )
        doc = self.store.insert("product", product)
        logger.info("Created product %s", doc["_id"])
        return serialize(doc)

    @guarded
    def update(self, product_id: str, payload: Any) -> dict:
        current = _load(self.store, "product", product_id, self.NOT_FOUND)
        data = validate_product(payload)
        fields = {
            "title": data.title,
            "author": data.author,
            "description": data.description,
            "imageUrl": data.imageUrl,
            "isActive": data.isActive,
            "category": self._category_ids(data.category),
        }
        doc = self.store.update_fields("product", current["_id"], fields)
        if doc is None:
            raise NotFound(self.NOT_FOUND)
        logger.info("Updated product %s", doc["_id"])
        return serialize(doc)

    @guarded
    def delete(self, product_id: str) -> dict:
        oid = parse_object_id(product_id)
        doc = self.store.delete("product", oid) if oid is not None else None
        if doc is None:
            raise NotFound(self.NOT_FOUND)
        logger.info("Deleted product %s", oid)
        return serialize(doc)


class CommentService:
    PRODUCT_NOT_FOUND = "Product not found."
    NOT_FOUND = "Comment not found."

    def __init__(self, store: DocumentStore):
        self.store = store

    def _comment_id(self, product: dict, raw_id: Any) -> ObjectId:
        oid = parse_object_id(raw_id)
        comments = product.get("comments") or []
        if oid is None or not any(isinstance(c, dict) and c.get("_id") == oid for c in comments):
            raise NotFound(self.NOT_FOUND)
        return oid

    @guarded
    def list_for_product(self, product_id: str) -> List[Any]:
        product = _load(self.store, "product", product_id, self.PRODUCT_NOT_FOUND)
        return serialize(product.get("comments") or [])

    @guarded
    def add(self, product_id: str, payload: Any) -> Dict[str, dict]:
        data = validate_comment(payload)
        oid = parse_object_id(product_id)
        comment = Comment(
            text=data.text,
            likeCount=data.likeCount,
            username=data.username,
            user=ObjectId(data.userId),
        ).model_dump(by_alias=True)
        product = self.store.push("product", oid, "comments", comment) if oid is not None else None
        if product is None:
            raise NotFound(self.PRODUCT_NOT_FOUND)
        logger.info("Added comment %s to product %s", comment["_id"], oid)
        # Prefer the stored copy: the server may round the date.
        stored = next(
            (c for c in product.get("comments") or [] if isinstance(c, dict) and c.get("_id") == comment["_id"]),
            comment,
        )
        return {"comment": serialize(stored), "product": serialize(product)}

    @guarded
    def update(self, product_id: str, comment_id: str, payload: Any) -> dict:
        product = _load(self.store, "product", product_id, self.PRODUCT_NOT_FOUND)
        oid = self._comment_id(product, comment_id)
        fields = validate_comment_update(payload).model_dump()
        updated = self.store.update_element("product", product["_id"], "comments", oid, fields)
        if updated is None:
            raise NotFound(self.NOT_FOUND)
        logger.info("Updated comment %s on product %s", oid, product["_id"])
        return serialize(updated)

    @guarded
    def delete(self, product_id: str, comment_id: str) -> dict:
        product = _load(self.store, "product", product_id, self.PRODUCT_NOT_FOUND)
        oid = self._comment_id(product, comment_id)
        updated = self.store.pull("product", product["_id"], "comments", oid)
        if updated is None:
            raise NotFound(self.NOT_FOUND)
        logger.info("Deleted comment %s from product %s", oid, product["_id"])
        return serialize(updated)


class UserService:
    NOT_FOUND = "User not found."

    def __init__(self, store: DocumentStore, tokens: TokenService):
        self.store = store
        self.tokens = tokens

    @staticmethod
    def _public(doc: dict) -> dict:
        return serialize({k: v for k, v in doc.items() if k != "password"})

    @guarded
    def register(self, payload: Any) -> dict:
        data = validate_register(payload)
        if self.store.find_one("user", {"email": data.email}):
            raise Conflict()
        user = User(name=data.name, email=data.email, password=hash_password(data.password))
        try:
            doc = self.store.insert("user", user)
        except DuplicateKeyError:
            raise Conflict()
        logger.info("Registered user %s", doc["_id"])
        token = self.tokens.issue(str(doc["_id"]), doc["isAdmin"])
        return {"token": token, "user": self._public(doc)}

    @guarded
    def login(self, payload: Any) -> dict:
        data = validate_login(payload)
        user = self.store.find_one("user", {"email": data.email})
        if user is None or not verify_password(data.password, user.get("password")):
            logger.warning("Failed login attempt")
            raise InvalidCredentials()
        return {"token": self.tokens.issue(str(user["_id"]), user.get("isAdmin", False))}

    @guarded
    def get_by_token(self, token: Optional[str]) -> dict:
        identity = self.tokens.verify(token)
        oid = parse_object_id(identity.user_id)
        doc = self.store.get("user", oid, PUBLIC_USER_FIELDS) if oid is not None else None
        if doc is None:
            raise NotFound(self.NOT_FOUND)
        return doc

    @guarded
    def list_all(self) -> List[dict]:
        return self.store.find("user", projection=PUBLIC_USER_FIELDS)

    @guarded
    def seed_admin(self, name: str, email: str, password: str) -> None:
        _, email = validate_email(email)
        existing = self.store.find_one("user", {"email": email})
        if existing is not None:
            if not existing.get("isAdmin"):
                self.store.update_fields("user", existing["_id"], {"isAdmin": True})
                logger.info("Promoted user %s to admin", existing["_id"])
            return
        doc = self.store.insert("user", User(name=name, email=email, password=hash_password(password), isAdmin=True))
        logger.info("Seeded admin user %s", doc["_id"])
