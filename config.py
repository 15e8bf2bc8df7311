import os


def _env_flag(name, default=False):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY', 'dev-secret-key-for-quotes')

    # Persistence gateway. No URL means the app runs against the unconfigured stub.
    DATABASE_URL = os.environ.get('DATABASE_URL')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Tax-ID registry (CNPJ lookup)
    TAX_REGISTRY_URL = os.environ.get('TAX_REGISTRY_URL', 'https://receitaws.com.br/v1/cnpj')
    TAX_REGISTRY_TIMEOUT = float(os.environ.get('TAX_REGISTRY_TIMEOUT', '10'))

    # Messaging deep link
    MESSAGING_BASE_URL = os.environ.get('MESSAGING_BASE_URL', 'https://wa.me')
    MESSAGING_COUNTRY_CODE = os.environ.get('MESSAGING_COUNTRY_CODE', '55')

    CURRENCY_SYMBOL = os.environ.get('CURRENCY_SYMBOL', 'R$')
    BRAND_NAME = os.environ.get('BRAND_NAME', 'Quote Builder')
    CHECKOUT_URL = os.environ.get('CHECKOUT_URL', '')

    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    JSON_LOGS = _env_flag('JSON_LOGS')
