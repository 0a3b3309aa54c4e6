import os


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///wordchain.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    CORS_ORIGINS = [o.strip() for o in os.environ.get(
        'CORS_ORIGINS', 'http://localhost:5173,http://127.0.0.1:5173').split(',') if o.strip()]
    # Turn timer used when a lobby is created without one (seconds)
    DEFAULT_TIMER_DURATION_SEC = int(os.environ.get('DEFAULT_TIMER_DURATION_SEC', '15'))
    # How long after a submission it can still be disputed (seconds)
    DISPUTE_WINDOW_SEC = int(os.environ.get('DISPUTE_WINDOW_SEC', '5'))
    GAME_CODE_LENGTH = int(os.environ.get('GAME_CODE_LENGTH', '6'))
    # Server-side watchdog for turn timeouts and dispute finalization. 0 disables.
    ENABLE_TURN_SCHEDULER = os.environ.get('ENABLE_TURN_SCHEDULER', '1') == '1'
