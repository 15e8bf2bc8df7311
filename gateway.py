"""
Persistence gateway: row CRUD over the five collections plus an auth client.

Every call returns a Result instead of raising, so callers decide whether a
failure is worth surfacing. Two implementations exist: SqlGateway, backed by
Flask-SQLAlchemy, and UnconfiguredGateway, used when no database is
configured. create_gateway() picks one once at startup.
"""
import logging

from flask_login import current_user, login_user, logout_user
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.security import check_password_hash, generate_password_hash

from errors import AuthError, BackendError, NotConfiguredError, ValidationError
from models import TABLES, User, db

log = logging.getLogger(__name__)

# Never leaves the gateway
PRIVATE_COLUMNS = {'password_hash'}


class Result:
    """Either `data` or `error` (an AppError), never both."""
    __slots__ = ('data', 'error')

    def __init__(self, data=None, error=None):
        self.data = data
        self.error = error

    @classmethod
    def success(cls, data=None):
        return cls(data=data)

    @classmethod
    def failure(cls, error):
        return cls(error=error)

    @property
    def ok(self):
        return self.error is None

    def unwrap(self):
        if self.error is not None:
            raise self.error
        return self.data

    def __repr__(self):
        return f"Result(error={self.error!r})" if self.error else f"Result(data={self.data!r})"


class Gateway:
    """Interface shared by the real gateway and the unconfigured stub."""
    configured = True

    def select(self, table, filters=None, order_by=None, descending=False, since=None):
        raise NotImplementedError

    def select_one(self, table, filters):
        raise NotImplementedError

    def insert(self, table, values):
        raise NotImplementedError

    def update(self, table, values, filters):
        raise NotImplementedError

    def delete(self, table, filters):
        raise NotImplementedError

    def set_subscription(self, user_id, is_pro):
        return self.update('users', {'is_pro': bool(is_pro)}, {'id': user_id})


def _row(obj):
    return {c.name: getattr(obj, c.name) for c in obj.__table__.columns
            if c.name not in PRIVATE_COLUMNS}


def _model(table):
    try:
        return TABLES[table]
    except KeyError:
        raise ValueError(f"Unknown collection: {table}")


def _check_columns(model, values):
    columns = set(model.__table__.columns.keys())
    unknown = set(values) - columns
    if unknown:
        raise ValueError(f"Unknown columns for {model.__tablename__}: {sorted(unknown)}")


class SqlGateway(Gateway):
    def __init__(self, database=db):
        self.db = database
        self.auth = SqlAuth(database)

    def _failure(self, op, table, exc):
        self.db.session.rollback()
        log.error("%s on %s failed: %s", op, table, exc, extra={'table': table})
        return Result.failure(BackendError(detail=str(exc)))

    def _query(self, model, filters):
        query = model.query
        if filters:
            _check_columns(model, filters)
            query = query.filter_by(**filters)
        return query

    def select(self, table, filters=None, order_by=None, descending=False, since=None):
        model = _model(table)
        try:
            query = self._query(model, filters)
            if since is not None:
                column, value = since
                query = query.filter(getattr(model, column) >= value)
            if order_by:
                column = getattr(model, order_by)
                query = query.order_by(column.desc() if descending else column.asc())
            return Result.success([_row(obj) for obj in query.all()])
        except SQLAlchemyError as e:
            return self._failure('select', table, e)

    def select_one(self, table, filters):
        model = _model(table)
        try:
            obj = self._query(model, filters).first()
            return Result.success(_row(obj) if obj is not None else None)
        except SQLAlchemyError as e:
            return self._failure('select_one', table, e)

    def insert(self, table, values):
        model = _model(table)
        _check_columns(model, values)
        values = {k: v for k, v in values.items() if not (k in ('id', 'created_at') and v is None)}
        try:
            obj = model(**values)
            self.db.session.add(obj)
            self.db.session.commit()
            return Result.success(_row(obj))
        except SQLAlchemyError as e:
            return self._failure('insert', table, e)

    def update(self, table, values, filters):
        model = _model(table)
        _check_columns(model, values)
        try:
            rows = self._query(model, filters).all()
            for obj in rows:
                for key, value in values.items():
                    setattr(obj, key, value)
            self.db.session.commit()
            return Result.success(len(rows))
        except SQLAlchemyError as e:
            return self._failure('update', table, e)

    def delete(self, table, filters):
        model = _model(table)
        try:
            rows = self._query(model, filters).all()
            for obj in rows:
                self.db.session.delete(obj)
            self.db.session.commit()
            return Result.success(len(rows))
        except SQLAlchemyError as e:
            return self._failure('delete', table, e)


class SqlAuth:
    """Email/password auth over the users table; Flask-Login keeps the signed-in user."""

    def __init__(self, database=db):
        self.db = database

    def sign_up(self, email, password):
        email = (email or "").strip().lower()
        try:
            if User.query.filter_by(email=email).first() is not None:
                return Result.failure(ValidationError("Email already registered"))
            user = User(email=email, password_hash=generate_password_hash(password), is_pro=False)
            self.db.session.add(user)
            self.db.session.commit()
        except SQLAlchemyError as e:
            self.db.session.rollback()
            log.error("sign_up failed: %s", e)
            return Result.failure(BackendError(detail=str(e)))
        login_user(user)
        log.info("New account %s", user.id, extra={'user_id': user.id})
        return Result.success(_row(user))

    def sign_in(self, email, password):
        email = (email or "").strip().lower()
        try:
            user = User.query.filter_by(email=email).first()
        except SQLAlchemyError as e:
            log.error("sign_in failed: %s", e)
            return Result.failure(BackendError(detail=str(e)))
        if user is None or not check_password_hash(user.password_hash, password or ""):
            return Result.failure(AuthError("Invalid email or password"))
        login_user(user)
        return Result.success(_row(user))

    def sign_out(self):
        logout_user()
        return Result.success(None)

    def get_current_user(self):
        try:
            if not current_user.is_authenticated:
                return Result.success(None)
            return Result.success(_row(current_user._get_current_object()))
        except SQLAlchemyError as e:
            log.error("get_current_user failed: %s", e)
            return Result.failure(BackendError(detail=str(e)))


def _not_configured():
    return Result.failure(NotConfiguredError())


class UnconfiguredAuth:
    def sign_up(self, email, password):
        return _not_configured()

    def sign_in(self, email, password):
        return _not_configured()

    def sign_out(self):
        return Result.success(None)

    def get_current_user(self):
        return _not_configured()


class UnconfiguredGateway(Gateway):
    """Stand-in when no database is configured: every call reports NotConfiguredError."""
    configured = False

    def __init__(self):
        self.auth = UnconfiguredAuth()

    def select(self, table, filters=None, order_by=None, descending=False, since=None):
        return _not_configured()

    def select_one(self, table, filters):
        return _not_configured()

    def insert(self, table, values):
        return _not_configured()

    def update(self, table, values, filters):
        return _not_configured()

    def delete(self, table, filters):
        return _not_configured()


def create_gateway(app):
    if app.config.get('SQLALCHEMY_DATABASE_URI'):
        return SqlGateway(db)
    log.warning("DATABASE_URL is not set; running with the unconfigured gateway")
    return UnconfiguredGateway()
