# taskmarket/app.py
from wsgiref.simple_server import make_server
from urllib.parse import parse_qs
import json
import logging
import re
import sys

from taskmarket.config import AppConfig, configure_logging, load_config_from_env
from taskmarket.database.database import create_db_engine, create_session_factory
from taskmarket.database.db_init import initialize_db, DEFAULT_MEMBER_ROLE
from taskmarket.repositories.sqlalchemy.sqlalchemy_user_repository import SqlalchemyUserRepository
from taskmarket.repositories.sqlalchemy.sqlalchemy_role_repository import SqlalchemyRoleRepository
from taskmarket.repositories.sqlalchemy.sqlalchemy_permission_repository import SqlalchemyPermissionRepository
from taskmarket.repositories.sqlalchemy.sqlalchemy_task_repository import SqlalchemyTaskRepository
from taskmarket.services.authorization import require_permission
from taskmarket.services.expiry_service import TaskExpiryService
from taskmarket.services.identity_service import IdentityService
from taskmarket.services.permission_service import PermissionService
from taskmarket.services.task_service import TaskService
from taskmarket.services.token_service import TokenService
from taskmarket.jobs.scheduler import TaskExpiryScheduler
from taskmarket.jobs.task_expiry import build_expiry_job
from taskmarket.services.exceptions import (
    TokenInvalidError, AuthenticationError, PermissionDeniedError, PermissionLookupError,
    UserNotFoundError, RoleNotFoundError, PermissionNotFoundError, TaskNotFoundError,
    ExecutionNotFoundError, UserCreationError, InvalidModeError, TaskUnavailableError,
    TaskAlreadyClaimedError, ReservationExpiredError, InvalidExecutionStateError,
)

logger = logging.getLogger(__name__)

# --------------------------------------------------------------------------
## 요청 처리 유틸리티 함수
# --------------------------------------------------------------------------

def get_request_data(environ):
    try:
        content_length = int(environ.get("CONTENT_LENGTH") or 0)
        data = json.loads(environ["wsgi.input"].read(content_length)) if content_length > 0 else {}
    except (ValueError, json.JSONDecodeError):
        raise ValueError("Invalid or missing JSON body.")
    if not isinstance(data, dict):
        raise ValueError("JSON body must be an object.")
    return data

def get_query_param(environ, name, default=None):
    values = parse_qs(environ.get("QUERY_STRING", "")).get(name)
    return values[0] if values else default

def authorize_and_get_token_data(environ):
    auth_header = environ.get('HTTP_AUTHORIZATION', '')
    scheme, _, token = auth_header.partition(' ')
    if scheme.lower() != 'bearer' or not token:
        raise TokenInvalidError("Missing 'Authorization: Bearer <token>' header.")
    identity_service = environ['services']['identity']
    return identity_service.validate_token(token.strip())

def authorize(environ, permission_key):
    """토큰을 검증하고 필요한 권한이 있는지 확인한 뒤 토큰 데이터를 반환합니다."""
    token_data = authorize_and_get_token_data(environ)
    require_permission(token_data, permission_key)
    return token_data

def handle_exception(e):
    error_map = {
        TokenInvalidError: "401 Unauthorized",
        AuthenticationError: "401 Unauthorized",
        PermissionDeniedError: "403 Forbidden",
        UserNotFoundError: "404 Not Found",
        RoleNotFoundError: "404 Not Found",
        PermissionNotFoundError: "404 Not Found",
        TaskNotFoundError: "404 Not Found",
        ExecutionNotFoundError: "404 Not Found",
        ValueError: "400 Bad Request",
        InvalidModeError: "400 Bad Request",
        UserCreationError: "400 Bad Request",
        TaskUnavailableError: "400 Bad Request",
        TaskAlreadyClaimedError: "400 Bad Request",
        ReservationExpiredError: "400 Bad Request",
        InvalidExecutionStateError: "400 Bad Request",
    }
    status = error_map.get(type(e))
    if status is None:
        # PermissionLookupError 등 내부 오류는 상세 내용을 응답에 포함하지 않습니다.
        if not isinstance(e, PermissionLookupError):
            logger.exception("Unhandled error while processing request")
        return "500 Internal Server Error", json.dumps({"error": "Internal server error"})
    return status, json.dumps({"error": str(e)})

# --------------------------------------------------------------------------
## WSGI 애플리케이션 (의존성 주입 및 라우팅)
# --------------------------------------------------------------------------

def create_app(session_factory, token_service: TokenService, config: AppConfig):
    """
    요청마다 DB 세션과 서비스 객체를 구성하는 WSGI 애플리케이션을 생성합니다.

    Args:
        session_factory: SQLAlchemy 세션 팩토리.
        token_service: 프로세스 전체에서 공유하는 토큰 서비스.
        config: 애플리케이션 설정.
    """
    def application(environ, start_response):
        db_session = session_factory()
        try:
            # 1. 의존성 생성 (Repositories -> Services)
            user_repo = SqlalchemyUserRepository(db_session)
            role_repo = SqlalchemyRoleRepository(db_session)
            permission_repo = SqlalchemyPermissionRepository(db_session)
            task_repo = SqlalchemyTaskRepository(db_session)

            permission_service = PermissionService(user_repo, role_repo, permission_repo)
            identity_service = IdentityService(user_repo, permission_repo, permission_service, token_service)
            task_service = TaskService(task_repo, reservation_window=config.reservation_window)
            expiry_service = TaskExpiryService(task_repo, batch_size=config.expiry_batch_size)

            # 2. 생성된 서비스 객체들을 environ을 통해 핸들러에 전달
            environ['services'] = {
                'identity': identity_service,
                'permissions': permission_service,
                'tasks': task_service,
                'expiry': expiry_service,
            }

            # 3. 라우팅 및 핸들러 실행
            path = environ.get("PATH_INFO", "")
            method = environ.get("REQUEST_METHOD", "")

            handler, path_args = None, []
            for route_method, pattern, route_handler in ROUTES:
                if method == route_method and (match := re.match(pattern, path)):
                    handler, path_args = route_handler, match.groups()
                    break

            if handler:
                status, response_body = handler(environ, *path_args)
            else:
                status, response_body = '404 Not Found', json.dumps({'error': 'Not Found'})

        except Exception as e:
            db_session.rollback()
            status, response_body = handle_exception(e)
        finally:
            db_session.close()

        start_response(status, [("Content-Type", "application/json")])
        return [response_body.encode("utf-8")]

    return application

# --------------------------------------------------------------------------
## 핸들러 함수
# --------------------------------------------------------------------------

def register_user_handler(environ, *args):
    data = get_request_data(environ)
    services = environ['services']
    user = services['identity'].create_user(
        username=data.get('username'),
        email=data.get('email'),
        password=data.get('password'),
        mode=data.get('mode', 'taskDoer'),
    )
    try:
        services['permissions'].assign_role(user['id'], DEFAULT_MEMBER_ROLE)
    except RoleNotFoundError:
        logger.warning("Default role '%s' missing, user %s created without roles", DEFAULT_MEMBER_ROLE, user['id'])
    return '201 Created', json.dumps(user)

def auth_tokens_handler(environ, *args):
    data = get_request_data(environ)
    token = environ['services']['identity'].authenticate(data.get('email', ''), data.get('password', ''))
    return '201 Created', json.dumps(token)

def auth_me_handler(environ, *args):
    token_data = authorize_and_get_token_data(environ)
    return '200 OK', json.dumps({
        "userId": token_data["userId"],
        "mode": token_data.get("mode"),
        "roles": token_data.get("roles", []),
        "permissions": token_data.get("permissions", []),
        "restricted": token_data.get("restricted", []),
    })

def switch_mode_handler(environ, *args):
    token_data = authorize_and_get_token_data(environ)
    data = get_request_data(environ)
    token = environ['services']['identity'].switch_mode(token_data['userId'], data.get('mode'))
    return '200 OK', json.dumps(token)

def list_roles_handler(environ, *args):
    authorize(environ, 'roles.view')
    roles = environ['services']['permissions'].list_roles()
    return '200 OK', json.dumps({"roles": roles})

def list_permissions_handler(environ, *args):
    authorize(environ, 'roles.view')
    permissions = environ['services']['permissions'].list_permissions()
    return '200 OK', json.dumps({"permissions": permissions})

def assign_role_handler(environ, user_id, role_key):
    authorize(environ, 'roles.manage')
    environ['services']['permissions'].assign_role(int(user_id), role_key)
    return '204 No Content', ''

def revoke_role_handler(environ, user_id, role_key):
    authorize(environ, 'roles.manage')
    environ['services']['permissions'].revoke_role(int(user_id), role_key)
    return '204 No Content', ''

def grant_permission_handler(environ, role_key, permission_key):
    authorize(environ, 'roles.manage')
    data = get_request_data(environ)
    result = environ['services']['permissions'].grant_permission(
        role_key, permission_key, mode=data.get('mode', 'all'), allow=data.get('allow', True)
    )
    return '200 OK', json.dumps(result)

def remove_permission_handler(environ, role_key, permission_key):
    authorize(environ, 'roles.manage')
    mode = get_query_param(environ, 'mode', 'all')
    environ['services']['permissions'].remove_permission(role_key, permission_key, mode)
    return '204 No Content', ''

def update_restrictions_handler(environ, user_id):
    authorize(environ, 'users.restrict')
    data = get_request_data(environ)
    result = environ['services']['identity'].set_restricted_permissions(
        int(user_id), data.get('restricted_permissions')
    )
    return '200 OK', json.dumps(result)

def claim_task_handler(environ, task_id):
    token_data = authorize(environ, 'tasks.take')
    execution = environ['services']['tasks'].claim_task(token_data['userId'], int(task_id))
    return '201 Created', json.dumps(execution)

def submit_proof_handler(environ, execution_id):
    token_data = authorize(environ, 'tasks.complete')
    data = get_request_data(environ)
    execution = environ['services']['tasks'].submit_proof(
        token_data['userId'], int(execution_id), data.get('proof_url')
    )
    return '200 OK', json.dumps(execution)

def approve_execution_handler(environ, execution_id):
    authorize(environ, 'tasks.manage')
    execution = environ['services']['tasks'].approve_execution(int(execution_id))
    return '200 OK', json.dumps(execution)

def reject_execution_handler(environ, execution_id):
    authorize(environ, 'tasks.manage')
    data = get_request_data(environ)
    execution = environ['services']['tasks'].reject_execution(int(execution_id), data.get('reason'))
    return '200 OK', json.dumps(execution)

def expire_reservations_handler(environ, *args):
    authorize(environ, 'tasks.manage')
    result = environ['services']['expiry'].expire_reservations()
    return '200 OK', json.dumps(result)


ROUTES = [
    ('POST', r'^/v1/users$', register_user_handler),
    ('POST', r'^/v1/auth/tokens$', auth_tokens_handler),
    ('GET', r'^/v1/auth/me$', auth_me_handler),
    ('PUT', r'^/v1/auth/mode$', switch_mode_handler),
    ('GET', r'^/v1/roles$', list_roles_handler),
    ('GET', r'^/v1/permissions$', list_permissions_handler),
    ('PUT', r'^/v1/users/([0-9]+)/roles/([a-zA-Z0-9_]+)$', assign_role_handler),
    ('DELETE', r'^/v1/users/([0-9]+)/roles/([a-zA-Z0-9_]+)$', revoke_role_handler),
    ('PUT', r'^/v1/roles/([a-zA-Z0-9_]+)/permissions/([a-zA-Z0-9_.]+)$', grant_permission_handler),
    ('DELETE', r'^/v1/roles/([a-zA-Z0-9_]+)/permissions/([a-zA-Z0-9_.]+)$', remove_permission_handler),
    ('PUT', r'^/v1/users/([0-9]+)/restrictions$', update_restrictions_handler),
    ('POST', r'^/v1/tasks/([0-9]+)/executions$', claim_task_handler),
    ('POST', r'^/v1/executions/([0-9]+)/submission$', submit_proof_handler),
    ('POST', r'^/v1/executions/([0-9]+)/approval$', approve_execution_handler),
    ('POST', r'^/v1/executions/([0-9]+)/rejection$', reject_execution_handler),
    ('POST', r'^/v1/actions/expire-reservations$', expire_reservations_handler),
]

# --------------------------------------------------------------------------
## 서버 실행
# --------------------------------------------------------------------------

def main(env_file=".env"):
    config = load_config_from_env(env_file)
    configure_logging(config)

    engine = create_db_engine(config.database_url)
    session_factory = create_session_factory(engine)
    initialize_db(engine, session_factory)

    token_service = TokenService(config.jwt_secret, config.jwt_algorithm, config.jwt_expires_minutes)
    scheduler = TaskExpiryScheduler(
        build_expiry_job(session_factory, batch_size=config.expiry_batch_size),
        interval_seconds=config.expiry_sweep_interval_seconds,
    )
    application = create_app(session_factory, token_service, config)

    scheduler.start()
    try:
        with make_server(config.host, config.port, application) as httpd:
            logger.info("Serving taskmarket on %s:%s...", config.host, config.port)
            httpd.serve_forever()
    except KeyboardInterrupt:
        logger.info("Shutting down...")
    finally:
        scheduler.stop(timeout=30)
        engine.dispose()

if __name__ == "__main__":
    try:
        main()
    except Exception as e:
        print(f"Error starting server: {e}", file=sys.stderr)
        sys.exit(1)
