import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent

DEFAULT_LGPD_TEXT = (
    'Seus dados serão usados apenas para fins de pesquisa e não serão compartilhados '
    'com terceiros. Ao continuar, você concorda com nossos termos de privacidade.'
)


class Config:
    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-change-me')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    ADMIN_EMAIL = os.getenv('ADMIN_EMAIL', 'admin@fieldsurvey.local')
    ADMIN_PASSWORD = os.getenv('ADMIN_PASSWORD', 'admin123')

    APP_TITLE = os.getenv('APP_TITLE', 'Pesquisa de Campo')
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')

    TIME_ZONE = os.getenv('TIME_ZONE', 'America/Sao_Paulo')

    DEFAULT_RESPONSE_GOAL = int(os.getenv('DEFAULT_RESPONSE_GOAL', '100'))
    DEFAULT_LGPD_TEXT = os.getenv('DEFAULT_LGPD_TEXT', DEFAULT_LGPD_TEXT)

    DATABASE_URL = os.getenv('DATABASE_URL')
    if DATABASE_URL:
        # Render provides postgres://; SQLAlchemy expects postgresql+psycopg2://
        SQLALCHEMY_DATABASE_URI = DATABASE_URL.replace('postgres://', 'postgresql+psycopg2://', 1)
    else:
        db_path = BASE_DIR / 'instance' / 'fieldsurvey.db'
        db_path.parent.mkdir(parents=True, exist_ok=True)
        SQLALCHEMY_DATABASE_URI = f'sqlite:///{db_path.as_posix()}'


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = 'test-secret'
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    ADMIN_EMAIL = 'admin@test.local'
    ADMIN_PASSWORD = 'secret'
    TIME_ZONE = 'UTC'
