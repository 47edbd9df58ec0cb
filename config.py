"""
Configuration Management
Loads environment variables
"""
import os
from dotenv import load_dotenv

load_dotenv()

class Config:
    """Application configuration"""

    # Application Settings
    TIMEZONE = os.getenv("TIMEZONE", "Europe/Copenhagen")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Supported rolling windows (days)
    WINDOW_DAYS = (7, 30, 180)

    # Source table holding imported work cycles
    WORK_CYCLES_TABLE = os.getenv("WORK_CYCLES_TABLE", "work_cycles")
