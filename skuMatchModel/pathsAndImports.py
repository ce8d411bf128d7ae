import os

from dotenv import load_dotenv

load_dotenv()

# Seed catalog CSV (used by the CSV store and the table seeder)
BM_SEED_CSV_PATH = os.getenv(
    "SKU_SEED_CSV_PATH",
    os.path.join(os.path.dirname(os.path.abspath(__file__)), "dataSKU", "seedSkus.csv"),
)

# Backing store
BM_DATABASE_URL = os.getenv("DATABASE_URL", "")

# Embedding model (sentence-transformers) and its vector width
BM_EMBEDDING_MODEL = os.getenv("SKU_EMBEDDING_MODEL", "all-MiniLM-L6-v2")
BM_EMBEDDING_DIM = int(os.getenv("SKU_EMBEDDING_DIM", "384"))

# LLM used for disambiguation and task splitting
BM_LLM_MODEL = os.getenv("SKU_LLM_MODEL", "gpt-4o-mini")
BM_OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")

# Catalog snapshot lifetime (seconds)
BM_CATALOG_TTL_SECONDS = float(os.getenv("SKU_CATALOG_TTL_SECONDS", "3600"))

# Trailing window of the concatenated call history fed to full detection
BM_CONTEXT_WINDOW_CHARS = int(os.getenv("SKU_CONTEXT_WINDOW_CHARS", "200"))
