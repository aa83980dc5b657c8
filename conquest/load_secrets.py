import os
from dotenv import load_dotenv

load_dotenv()

user = os.getenv("DB_USER", "isucon")
password = os.getenv("DB_PASSWORD", "isucon")
port = os.getenv("DB_PORT", "5432")
db_name = os.getenv("DB_NAME", "conquest")
db_driver = os.getenv("DB_DRIVER", "postgresql+asyncpg")
# Order matters: a user's shard is ``user_id % len(shard_hosts)``.
shard_hosts = [h.strip() for h in os.getenv("SHARD_HOSTS", "127.0.0.1").split(",") if h.strip()]
pool_size = int(os.getenv("DB_POOL_SIZE", "20"))
max_overflow = int(os.getenv("DB_MAX_OVERFLOW", "20"))
operation_timeout = float(os.getenv("DB_OPERATION_TIMEOUT", "10"))

redis_host = os.getenv("REDIS_HOST", "redis")
redis_port = int(os.getenv("REDIS_PORT", "6379"))
redis_timeout = float(os.getenv("REDIS_TIMEOUT", "5"))

snowflake_node_id = int(os.getenv("SNOWFLAKE_NODE_ID", "1"))
game_timezone = os.getenv("GAME_TIMEZONE", "Asia/Tokyo")
token_sweep_minutes = int(os.getenv("TOKEN_SWEEP_MINUTES", "60"))

if __name__ == "__main__":
    print(user, shard_hosts, port, db_name, redis_host, redis_port)
