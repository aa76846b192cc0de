import os

os.environ.setdefault('DATABASE_URL', 'sqlite://')
os.environ.setdefault('AUTO_CREATE_TABLES', 'false')
os.environ.setdefault('SEED_CATALOG_ON_STARTUP', 'false')
