import os
from dotenv import load_dotenv
load_dotenv()

class Config:
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret")
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///hackhub.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")
    SENDGRID_API_KEY = os.getenv("SENDGRID_API_KEY")
    MAIL_FROM = os.getenv("MAIL_FROM", "noreply@example.com")
    MAIL_FROM_NAME = os.getenv("MAIL_FROM_NAME", "HackHub")
    APP_BASE_URL = os.getenv("APP_BASE_URL", "http://localhost:5000")
    STORAGE_BACKEND = os.getenv("STORAGE_BACKEND", "local")
    LOCAL_STORAGE_DIR = os.getenv("LOCAL_STORAGE_DIR", "./storage")
    S3_ENDPOINT = os.getenv("S3_ENDPOINT")
    S3_REGION = os.getenv("S3_REGION")
    S3_BUCKET = os.getenv("S3_BUCKET")
    S3_ACCESS_KEY = os.getenv("S3_ACCESS_KEY")
    S3_SECRET_KEY = os.getenv("S3_SECRET_KEY")
    # team invite codes
    INVITE_CODE_TTL_DAYS = int(os.getenv("INVITE_CODE_TTL_DAYS", "7"))
    INVITE_RATE_LIMIT_ATTEMPTS = int(os.getenv("INVITE_RATE_LIMIT_ATTEMPTS", "5"))
    INVITE_RATE_LIMIT_WINDOW_SEC = int(os.getenv("INVITE_RATE_LIMIT_WINDOW_SEC", "60"))
    # run RQ jobs inline instead of through redis
    RQ_EAGER = os.getenv("RQ_EAGER", "0") == "1"
    # relay cache invalidations to other app processes over redis pub/sub (needs a reachable REDIS_URL)
    CHANGE_FEED_REDIS = os.getenv("CHANGE_FEED_REDIS", "1") == "1"
    # cached judging reads expire after this many seconds; 0 keeps them until invalidated
    CACHE_TTL_SEC = int(os.getenv("CACHE_TTL_SEC", "30"))
