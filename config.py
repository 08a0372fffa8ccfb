# Tutoring Center Engagement Core Configuration

import logging
import os
from datetime import timedelta
from logging.handlers import RotatingFileHandler
from pathlib import Path

# Base directory
BASE_DIR = Path(__file__).parent.absolute()

DELIVERY_CHANNELS = ('log', 'whatsapp')


def _env_bool(name, default='False'):
    return os.environ.get(name, default).lower() in ['true', 'on', '1']


class Config:
    """Base configuration class"""

    # Flask Configuration
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'engagement-core-secret-key'
    DEBUG = _env_bool('DEBUG')
    TESTING = False

    # Scan Configuration (seconds)
    SCAN_DEBOUNCE_SECONDS = float(os.environ.get('SCAN_DEBOUNCE_SECONDS') or 3)
    SCAN_FEEDBACK_SECONDS = float(os.environ.get('SCAN_FEEDBACK_SECONDS') or 3)
    ATTENDANCE_POINTS = int(os.environ.get('ATTENDANCE_POINTS') or 10)

    # Report Configuration
    ISSUER_NAME = os.environ.get('ISSUER_NAME') or 'Your teacher'
    REPORT_REPEAT_INTERVAL = timedelta(days=int(os.environ.get('REPORT_REPEAT_DAYS') or 14))
    DELIVERY_DATABASE_PATH = BASE_DIR / 'database' / 'deliveries.db'
    WHATSAPP_COUNTRY_CODE = os.environ.get('WHATSAPP_COUNTRY_CODE', '')
    # 'log' only records messages; 'whatsapp' opens wa.me links on this host
    DELIVERY_CHANNEL = os.environ.get('DELIVERY_CHANNEL') or 'log'

    # Badge QR Code Configuration
    QR_CODE_SIZE = 10
    QR_CODE_BORDER = 4

    # Text Generation Configuration
    GEMINI_API_KEY = os.environ.get('GEMINI_API_KEY')
    GEMINI_MODEL = os.environ.get('GEMINI_MODEL') or 'gemini-1.5-flash'
    GENERATION_TIMEOUT = float(os.environ.get('GENERATION_TIMEOUT') or 30)

    # Logging Configuration
    LOG_LEVEL = os.environ.get('LOG_LEVEL') or 'INFO'
    LOG_FILE = BASE_DIR / 'logs' / 'engagement.log'
    LOG_MAX_BYTES = 10 * 1024 * 1024  # 10MB
    LOG_BACKUP_COUNT = 5
    LOG_FORMAT = '%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]'

    @classmethod
    def init_app(cls, app):
        """Initialize application configuration"""
        logging.basicConfig(level=cls.LOG_LEVEL, format=cls.LOG_FORMAT)

        app.config.update({
            key: getattr(cls, key) for key in dir(cls) if key.isupper()
        })


class DevelopmentConfig(Config):
    """Development configuration"""
    DEBUG = True
    LOG_LEVEL = 'DEBUG'
    DELIVERY_DATABASE_PATH = BASE_DIR / 'database' / 'deliveries_dev.db'


class TestingConfig(Config):
    """Testing configuration"""
    TESTING = True
    DEBUG = True

    # Tests pass their own store and text service
    DELIVERY_DATABASE_PATH = None
    GEMINI_API_KEY = None
    ISSUER_NAME = 'Mr. Adel'
    DELIVERY_CHANNEL = 'log'
    WHATSAPP_COUNTRY_CODE = ''


class ProductionConfig(Config):
    """Production configuration"""
    DEBUG = False
    LOG_LEVEL = 'WARNING'
    DELIVERY_DATABASE_PATH = BASE_DIR / 'database' / 'deliveries_prod.db'

    @classmethod
    def init_app(cls, app):
        super().init_app(app)

        # Setup file logging
        if not app.debug:
            cls.LOG_FILE.parent.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(
                cls.LOG_FILE,
                maxBytes=cls.LOG_MAX_BYTES,
                backupCount=cls.LOG_BACKUP_COUNT
            )
            file_handler.setFormatter(logging.Formatter(cls.LOG_FORMAT))
            file_handler.setLevel(logging.INFO)
            app.logger.addHandler(file_handler)

            app.logger.setLevel(logging.INFO)
            app.logger.info('Engagement core startup')


# Configuration dictionary
config = {
    'development': DevelopmentConfig,
    'testing': TestingConfig,
    'production': ProductionConfig,
    'default': DevelopmentConfig
}


def get_config(config_name=None):
    """Get configuration class by name or from the FLASK_ENV environment variable"""
    if config_name is None:
        config_name = os.environ.get('FLASK_ENV', 'default')
    return config.get(config_name, DevelopmentConfig)


def validate_config(config_class):
    """Validate configuration settings"""
    errors = []

    if config_class.SCAN_DEBOUNCE_SECONDS <= 0:
        errors.append("SCAN_DEBOUNCE_SECONDS must be positive")
    if config_class.SCAN_FEEDBACK_SECONDS <= 0:
        errors.append("SCAN_FEEDBACK_SECONDS must be positive")
    if config_class.REPORT_REPEAT_INTERVAL <= timedelta(0):
        errors.append("REPORT_REPEAT_DAYS must be positive")
    if not config_class.ISSUER_NAME:
        errors.append("ISSUER_NAME is required")
    if config_class.DELIVERY_CHANNEL not in DELIVERY_CHANNELS:
        errors.append(f"DELIVERY_CHANNEL must be one of: {', '.join(DELIVERY_CHANNELS)}")

    return errors
