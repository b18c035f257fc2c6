from baggs.config.settings import DevelopmentConfig, ProductionConfig
from baggs.config.testing import TestingConfig

config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}
