from config.settings import config
from config.testing import TestingConfig

config['testing'] = TestingConfig

__all__ = ["config", "TestingConfig"]
