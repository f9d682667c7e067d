import os

class Config:
    SECRET_KEY = os.getenv('SECRET_KEY', 'dev_secret_key')
    SQLALCHEMY_DATABASE_URI = os.getenv('DATABASE_URI', 'sqlite:///facilities.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    UPLOAD_FOLDER = os.getenv('UPLOAD_FOLDER', os.path.join('static', 'uploads'))
    MAX_CONTENT_LENGTH = int(os.getenv('MAX_CONTENT_LENGTH', 10 * 1024 * 1024))  # 10 MB
    MAX_UPLOAD_FILES = int(os.getenv('MAX_UPLOAD_FILES', 5))
    UPCOMING_WINDOW_DAYS = int(os.getenv('UPCOMING_WINDOW_DAYS', 30))
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
