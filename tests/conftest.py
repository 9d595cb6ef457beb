import os

# config_reader builds Settings at import time
os.environ.setdefault("BOT_TOKEN", "123456:TEST")
os.environ.setdefault("SUPABASE_URL", "https://lumina-test.supabase.co")
os.environ.setdefault("SUPABASE_KEY", "anon-test-key")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "service-role-test-key")
