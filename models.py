import uuid
from datetime import datetime

from flask_login import LoginManager, UserMixin
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
login_manager = LoginManager()


def new_id():
    return str(uuid.uuid4())


class User(UserMixin, db.Model):
    __tablename__ = 'users'
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    email = db.Column(db.String, unique=True, nullable=False)
    password_hash = db.Column(db.String, nullable=False)
    is_pro = db.Column(db.Boolean, default=False, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)


@login_manager.user_loader
def load_user(user_id):
    return db.session.get(User, user_id)


class CompanyInfo(db.Model):
    __tablename__ = 'company_info'
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    user_id = db.Column(db.String(36), db.ForeignKey('users.id'), unique=True, nullable=False)
    name = db.Column(db.String, default='')
    logo = db.Column(db.Text)
    phone = db.Column(db.String, default='')
    whatsapp = db.Column(db.String, default='')
    tax_id = db.Column(db.String, default='')
    address = db.Column(db.String, default='')
    contact_person = db.Column(db.String, default='')
    email = db.Column(db.String, default='')


class Client(db.Model):
    __tablename__ = 'clients'
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    user_id = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=False, index=True)
    name = db.Column(db.String, nullable=False)
    phone = db.Column(db.String, nullable=False)
    tax_id = db.Column(db.String, default='')
    address = db.Column(db.String, default='')
    created_at = db.Column(db.DateTime, default=datetime.utcnow)


class Item(db.Model):
    __tablename__ = 'items'
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    user_id = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=False, index=True)
    name = db.Column(db.String, nullable=False)
    description = db.Column(db.String, default='')
    category = db.Column(db.String, default='Product')
    price = db.Column(db.Float, nullable=False, default=0.0)
    unit = db.Column(db.String, default='')
    photo = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)


class Quote(db.Model):
    __tablename__ = 'quotes'
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    user_id = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=False, index=True)
    # No FK: deleting a client must not block its quotes
    client_id = db.Column(db.String(36))
    items = db.Column(db.JSON, nullable=False, default=list)
    total = db.Column(db.Float, nullable=False, default=0.0)
    status = db.Column(db.String, default='pending')
    notes = db.Column(db.Text, default='')
    signature = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)


# Collection name -> model, the only tables the gateway will touch
TABLES = {
    'users': User,
    'company_info': CompanyInfo,
    'clients': Client,
    'items': Item,
    'quotes': Quote,
}
