import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, Form, Request, status
from fastapi.responses import JSONResponse, RedirectResponse, Response
from fastapi.templating import Jinja2Templates
from pydantic import ValidationError
from starlette.middleware.sessions import SessionMiddleware

from shortener import auth, service
from shortener.config import Settings, get_settings, setup_logging
from shortener.errors import Forbidden, NotFound, ShortenerError, Unauthenticated, ValidationFailed
from shortener.models import User
from shortener.schemas import LinkCreate, LinkListResponse, LinkResponse, LinkUpdate, long_url_adapter
from shortener.store import Store, build_store
from shortener.utils import generate_id

logger = logging.getLogger(__name__)

templates = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))

pages = APIRouter()
api = APIRouter(prefix="/api")


def get_store(request: Request) -> Store:
    return request.app.state.store


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def current_user(request: Request) -> Optional[User]:
    """Пользователь текущей сессии или None."""
    user_id = request.session.get("user_id")
    if not user_id:
        return None
    user = get_store(request).get_user(user_id)
    if user is None:
        # Сессия пережила хранилище в памяти
        request.session.pop("user_id", None)
    return user


def require_user(user: Optional[User] = Depends(current_user)) -> User:
    if user is None:
        raise Unauthenticated()
    return user


def redirect(url: str) -> RedirectResponse:
    return RedirectResponse(url=url, status_code=status.HTTP_302_FOUND)


def render(request: Request, name: str, user: Optional[User], status_code: int = 200, **context):
    context["user"] = user
    return templates.TemplateResponse(request, name, context, status_code=status_code)


def handle_domain_error(request: Request, exc: ShortenerError):
    """Единая точка превращения доменных ошибок в ответ."""
    if request.url.path.startswith("/api"):
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})
    return render(request, "error.html", current_user(request),
                  status_code=exc.status_code, error=exc.message)


def parse_long_url(value: str) -> str:
    """Проверяет адрес из формы так же, как JSON API."""
    try:
        return str(long_url_adapter.validate_python((value or "").strip()))
    except ValidationError:
        raise ValidationFailed("Укажите полный адрес, например https://example.com.")


def to_response(view) -> LinkResponse:
    return LinkResponse(
        id=view.id,
        long_url=view.long_url,
        created_at=view.created_at,
        total_visits=view.total,
        unique_visits=view.unique,
    )


@pages.get("/")
def index(user: Optional[User] = Depends(current_user)):
    return redirect("/urls" if user else "/login")


@pages.get("/urls")
def list_urls(request: Request, user: User = Depends(require_user), store: Store = Depends(get_store)):
    """Список ссылок пользователя со статистикой переходов."""
    urls = service.links_for_user(user.id, store)
    return render(request, "urls_index.html", user, urls=urls)


@pages.get("/urls/new")
def new_url_form(request: Request, user: Optional[User] = Depends(current_user)):
    if user is None:
        return redirect("/login")
    return render(request, "urls_new.html", user)


@pages.post("/urls")
def create_url(
    longURL: str = Form(""),
    user: User = Depends(require_user),
    store: Store = Depends(get_store),
    settings: Settings = Depends(get_app_settings),
):
    link = service.create(
        store, user.id, parse_long_url(longURL),
        length=settings.id_length, max_attempts=settings.max_id_attempts,
    )
    return redirect(f"/urls/{link.id}")


@pages.get("/urls/{link_id}")
def show_url(
    request: Request,
    link_id: str,
    user: Optional[User] = Depends(current_user),
    store: Store = Depends(get_store),
):
    """
    Страница ссылки.
    Сначала проверяется существование ссылки, затем вход и права.
    """
    if store.get_link(link_id) is None:
        raise NotFound("Запрошенная ссылка не существует.")
    if user is None:
        raise Unauthenticated()
    link = service.get_owned(store, link_id, user.id)
    stats = service.aggregate(link)
    return render(request, "urls_show.html", user, link=link, stats=stats)


@pages.post("/urls/{link_id}")
def update_url(
    link_id: str,
    longURL: str = Form(""),
    user: User = Depends(require_user),
    store: Store = Depends(get_store),
):
    service.update(store, link_id, user.id, parse_long_url(longURL))
    return redirect("/urls")


@pages.post("/urls/{link_id}/delete")
def delete_url(link_id: str, user: User = Depends(require_user), store: Store = Depends(get_store)):
    service.delete(store, link_id, user.id)
    return redirect("/urls")


@pages.get("/u/{link_id}")
def follow_url(request: Request, link_id: str, store: Store = Depends(get_store)):
    """Перенаправляет на исходный адрес и учитывает переход."""
    long_url = service.resolve(store, link_id)

    visitor_id = request.session.get("user_id") or request.session.get("visitor_id")
    if not visitor_id:
        visitor_id = generate_id(10)
        request.session["visitor_id"] = visitor_id
    service.record_visit(store, link_id, visitor_id)

    return redirect(long_url)


@pages.get("/login")
def login_form(request: Request, user: Optional[User] = Depends(current_user)):
    if user is not None:
        return redirect("/urls")
    return render(request, "login.html", None)


@pages.get("/register")
def register_form(request: Request, user: Optional[User] = Depends(current_user)):
    if user is not None:
        return redirect("/urls")
    return render(request, "registration.html", None)


@pages.post("/login")
def login(
    request: Request,
    email: str = Form(""),
    password: str = Form(""),
    store: Store = Depends(get_store),
    settings: Settings = Depends(get_app_settings),
):
    user = auth.authenticate(store, email, password, rounds=settings.bcrypt_rounds)
    if user is None:
        raise Forbidden("Неверный email или пароль.")
    request.session["user_id"] = user.id
    return redirect("/urls")


@pages.post("/register")
def register(
    request: Request,
    email: str = Form(""),
    password: str = Form(""),
    store: Store = Depends(get_store),
    settings: Settings = Depends(get_app_settings),
):
    user = auth.register(
        store, email, password,
        id_length=settings.id_length,
        rounds=settings.bcrypt_rounds,
        max_attempts=settings.max_id_attempts,
    )
    request.session["user_id"] = user.id
    return redirect("/urls")


@pages.post("/logout")
def logout(request: Request):
    request.session.clear()
    return redirect("/login")


@api.get("/links", response_model=LinkListResponse)
def api_list_links(user: User = Depends(require_user), store: Store = Depends(get_store)):
    views = service.links_for_user(user.id, store)
    return LinkListResponse(links=[to_response(v) for v in views.values()])


@api.post("/links", response_model=LinkResponse, status_code=status.HTTP_201_CREATED)
def api_create_link(
    link_data: LinkCreate,
    user: User = Depends(require_user),
    store: Store = Depends(get_store),
    settings: Settings = Depends(get_app_settings),
):
    """Создает короткую ссылку."""
    link = service.create(
        store, user.id, str(link_data.long_url),
        length=settings.id_length, max_attempts=settings.max_id_attempts,
    )
    return LinkResponse(id=link.id, long_url=link.long_url, created_at=link.created_at)


@api.get("/links/{link_id}", response_model=LinkResponse)
def api_get_link(link_id: str, user: User = Depends(require_user), store: Store = Depends(get_store)):
    """Ссылка и статистика по ней."""
    link = service.get_owned(store, link_id, user.id)
    stats = service.aggregate(link)
    return LinkResponse(
        id=link.id,
        long_url=link.long_url,
        created_at=link.created_at,
        total_visits=stats.total,
        unique_visits=stats.unique,
    )


@api.put("/links/{link_id}", response_model=LinkResponse)
def api_update_link(
    link_id: str,
    link_update: LinkUpdate,
    user: User = Depends(require_user),
    store: Store = Depends(get_store),
):
    link = service.update(store, link_id, user.id, str(link_update.long_url))
    stats = service.aggregate(link)
    return LinkResponse(
        id=link.id,
        long_url=link.long_url,
        created_at=link.created_at,
        total_visits=stats.total,
        unique_visits=stats.unique,
    )


@api.delete("/links/{link_id}", status_code=status.HTTP_204_NO_CONTENT)
def api_delete_link(link_id: str, user: User = Depends(require_user), store: Store = Depends(get_store)):
    service.delete(store, link_id, user.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Логирование настраивается при запуске сервера, а не при импорте."""
    setup_logging(app.state.settings)
    logger.info("URL shortener started, storage=%s", app.state.settings.storage)
    yield


def create_app(settings: Optional[Settings] = None, store: Optional[Store] = None) -> FastAPI:
    if settings is None:
        settings = get_settings()
    if store is None:
        store = build_store(settings)

    app = FastAPI(
        lifespan=lifespan,
        title="URL Shortener",
        description="Сервис для сокращения ссылок",
        version="1.0.0",
    )
    app.state.settings = settings
    app.state.store = store

    app.add_middleware(
        SessionMiddleware,
        secret_key=settings.secret_key,
        session_cookie=settings.session_cookie,
        max_age=settings.session_max_age,
        same_site="lax",
    )
    app.add_exception_handler(ShortenerError, handle_domain_error)
    app.include_router(pages)
    app.include_router(api)
    return app


app = create_app()
