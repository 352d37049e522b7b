import logging
import os
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.database import Database

from auth import Identity, TokenService, authenticate, get_credential, require_admin
from config import Settings
from database import DocumentStore, connect
from errors import CatalogError
from services import CategoryService, CommentService, ProductService, UserService
from validation import first_error

logger = logging.getLogger(__name__)

router = APIRouter()


# ------------------------- Dependencies -------------------------

def get_categories(request: Request) -> CategoryService:
    return request.app.state.categories


def get_products(request: Request) -> ProductService:
    return request.app.state.products


def get_comments(request: Request) -> CommentService:
    return request.app.state.comments


def get_users(request: Request) -> UserService:
    return request.app.state.users


# ------------------------- Routes -------------------------

@router.get("/")
def root():
    return {"message": "Catalog API running"}


@router.get("/test")
def test_database(request: Request):
    store: DocumentStore = request.app.state.store
    settings: Settings = request.app.state.settings
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": "✅ Set" if settings.database_url else "❌ Not Set",
        "database_name": None,
        "connection_status": "Not Connected",
        "collections": [],
    }
    try:
        response["database_name"] = store.name
        response["collections"] = store.collections()[:10]
        response["database"] = "✅ Connected & Working"
        response["connection_status"] = "Connected"
    except Exception as e:
        response["database"] = f"⚠️ Connected but Error: {str(e)[:50]}"
    return response


# Categories
@router.get("/api/categories")
def list_categories(categories: CategoryService = Depends(get_categories)):
    return categories.list()


@router.get("/api/categories/{category_id}")
def get_category(category_id: str, categories: CategoryService = Depends(get_categories)):
    return categories.get(category_id)


@router.post("/api/categories", status_code=201)
def create_category(
    payload: Any = Body(None),
    _: Identity = Depends(require_admin),
    categories: CategoryService = Depends(get_categories),
):
    return categories.create(payload)


@router.put("/api/categories/{category_id}")
def update_category(
    category_id: str,
    payload: Any = Body(None),
    _: Identity = Depends(require_admin),
    categories: CategoryService = Depends(get_categories),
):
    return categories.update(category_id, payload)


@router.delete("/api/categories/{category_id}")
def delete_category(
    category_id: str,
    _: Identity = Depends(require_admin),
    categories: CategoryService = Depends(get_categories),
):
    return categories.delete(category_id)


# Products
@router.get("/api/products")
def list_products(products: ProductService = Depends(get_products)):
    return products.list()


@router.get("/api/products/byCategory/{category_id}")
def list_products_by_category(category_id: str, products: ProductService = Depends(get_products)):
    return products.get_by_category(category_id)


@router.get("/api/products/{product_id}")
def get_product(product_id: str, products: ProductService = Depends(get_products)):
    return products.get(product_id)


@router.post("/api/products", status_code=201)
def create_product(
    payload: Any = Body(None),
    _: Identity = Depends(require_admin),
    products: ProductService = Depends(get_products),
):
    return products.create(payload)


@router.put("/api/products/{product_id}")
def update_product(
    product_id: str,
    payload: Any = Body(None),
    _: Identity = Depends(require_admin),
    products: ProductService = Depends(get_products),
):
    return products.update(product_id, payload)


@router.delete("/api/products/{product_id}")
def delete_product(
    product_id: str,
    _: Identity = Depends(require_admin),
    products: ProductService = Depends(get_products),
):
    return products.delete(product_id)


# Comments, embedded in products
@router.get("/api/products/comment/{product_id}")
def list_comments(product_id: str, comments: CommentService = Depends(get_comments)):
    return comments.list_for_product(product_id)


@router.post("/api/products/comment/{product_id}", status_code=201)
def add_comment(
    product_id: str,
    payload: Any = Body(None),
    _: Identity = Depends(authenticate),
    comments: CommentService = Depends(get_comments),
):
    return comments.add(product_id, payload)


@router.put("/api/products/comment/{product_id}/{comment_id}")
def update_comment(
    product_id: str,
    comment_id: str,
    payload: Any = Body(None),
    _: Identity = Depends(authenticate),
    comments: CommentService = Depends(get_comments),
):
    return comments.update(product_id, comment_id, payload)


@router.delete("/api/products/comment/{product_id}/{comment_id}")
def delete_comment(
    product_id: str,
    comment_id: str,
    _: Identity = Depends(authenticate),
    comments: CommentService = Depends(get_comments),
):
    return comments.delete(product_id, comment_id)


# Users
@router.post("/api/users/create")
def register(response: Response, payload: Any = Body(None), users: UserService = Depends(get_users)):
    result = users.register(payload)
    response.headers["x-auth-token"] = result["token"]
    return result


@router.post("/api/users/auth")
def login(payload: Any = Body(None), users: UserService = Depends(get_users)):
    return users.login(payload)


@router.get("/api/users/userinfo")
def user_info(token: Optional[str] = Depends(get_credential), users: UserService = Depends(get_users)):
    return users.get_by_token(token)


@router.get("/api/users/allusers")
def list_users(users: UserService = Depends(get_users)):
    return users.list_all()


# ------------------------- Application -------------------------

async def handle_catalog_error(request: Request, exc: CatalogError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


async def handle_request_validation_error(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    message = first_error(errors) if errors else "Invalid request."
    return JSONResponse(status_code=400, content={"detail": message})


def create_app(settings: Optional[Settings] = None, database: Optional[Database] = None) -> FastAPI:
    settings = settings or Settings.from_env()
    logging.basicConfig(level=settings.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    client = None
    if database is None:
        client = connect(settings)
        database = client[settings.database_name]
    store = DocumentStore(database)
    tokens = TokenService(settings.jwt_secret, settings.jwt_algorithm)
    users = UserService(store, tokens)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        try:
            store.ensure_indexes()
            if settings.admin_email and settings.admin_password:
                users.seed_admin(settings.admin_name, settings.admin_email, settings.admin_password)
        except Exception:
            logger.exception("Startup tasks failed")
        yield
        if client is not None:
            client.close()

    app = FastAPI(title="Catalog API", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(CatalogError, handle_catalog_error)
    app.add_exception_handler(RequestValidationError, handle_request_validation_error)

    app.state.settings = settings
    app.state.store = store
    app.state.tokens = tokens
    app.state.categories = CategoryService(store)
    app.state.products = ProductService(store)
    app.state.comments = CommentService(store)
    app.state.users = users

    app.include_router(router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
