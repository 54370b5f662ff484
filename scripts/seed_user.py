import sys, os, hashlib
# add project root (one level up from /scripts) to import path
sys.path.append(os.path.dirname(os.path.dirname(__file__)))

from db_mongo import get_col

def sha(s): return hashlib.sha256(s.encode("utf-8")).hexdigest()

username = os.getenv("SEED_USERNAME", "editor")
password = os.getenv("SEED_PASSWORD", "ChangeMe")
role = os.getenv("SEED_ROLE", "moderator")

get_col("users").update_one(
    {"username": username},
    {"$set": {"username": username, "password_hash": sha(password), "role": role}},
    upsert=True
)
print(f"seeded {username} ({role})")
