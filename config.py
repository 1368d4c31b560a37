import os
from dotenv import load_dotenv
load_dotenv()

class Config:
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret")
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///video_assessment.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")
    # run queued jobs inline instead of handing them to an RQ worker
    RQ_SYNC = os.getenv("RQ_SYNC", "0") == "1"
    EVALUATION_QUEUE = os.getenv("EVALUATION_QUEUE", "default")
    EVALUATION_JOB_TIMEOUT = int(os.getenv("EVALUATION_JOB_TIMEOUT", "900"))
    GEMINI_API_KEY = os.getenv("GEMINI_API_KEY")
    GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-3-pro-preview")
    GEMINI_BASE_URL = os.getenv("GEMINI_BASE_URL", "https://generativelanguage.googleapis.com/v1beta")
    MODEL_TIMEOUT_SEC = float(os.getenv("MODEL_TIMEOUT_SEC", "300"))
    VIDEO_MIME_TYPE = os.getenv("VIDEO_MIME_TYPE", "video/mp4")
    MAX_AUTO_RETRIES = int(os.getenv("MAX_AUTO_RETRIES", "3"))
    DEFAULT_ROLE_FAMILY = os.getenv("DEFAULT_ROLE_FAMILY", "engineering")
    RUBRIC_DIR = os.getenv("RUBRIC_DIR")
    ADMIN_API_TOKEN = os.getenv("ADMIN_API_TOKEN")


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    RQ_SYNC = True
    GEMINI_API_KEY = "test-key"
    MODEL_TIMEOUT_SEC = 5.0
    ADMIN_API_TOKEN = "admin-token"
