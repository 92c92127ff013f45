"""
Configuration module for DealScope.
Contains Supabase settings, phase thresholds and training defaults.
"""

import os
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# Supabase Configuration
SUPABASE_URL = os.getenv("SUPABASE_URL")
SUPABASE_KEY = os.getenv("SUPABASE_KEY")
SUPABASE_SERVICE_KEY = os.getenv("SUPABASE_SERVICE_KEY")
CREDENTIAL_CACHE_TTL_SECONDS = int(os.getenv("CREDENTIAL_CACHE_TTL_SECONDS", "300"))

# Table names
CUSTOMER_CONFIG_TABLE = "customer_config"
LICENSES_TABLE = "licenses"
RECORDED_DEALS_TABLE = "recorded_deals"
FETCH_PAGE_SIZE = 1000  # Supabase caps responses, paginate explicitly

# Phase Gate thresholds
PHASE2_MIN_DEALS = int(os.getenv("PHASE2_MIN_DEALS", "50"))
PHASE2_MIN_QUALITY = int(os.getenv("PHASE2_MIN_QUALITY", "70"))
PHASE3_MIN_BOM_DEALS = int(os.getenv("PHASE3_MIN_BOM_DEALS", "20"))
VALID_PHASES = (1, 2, 3)

# Training minimums
TRAINING_MIN_DEALS = 100
TRAINING_MIN_PER_CLASS = 20
PROMOTION_MIN_AUC = float(os.getenv("PROMOTION_MIN_AUC", "0.60"))
MODEL_SCHEMA_VERSION = 2
TOP_FEATURE_COUNT = 10

# Training hyperparameters
TRAINING_EPOCHS = int(os.getenv("TRAINING_EPOCHS", "500"))
TRAINING_LEARNING_RATE = float(os.getenv("TRAINING_LEARNING_RATE", "0.05"))
TRAINING_L2 = float(os.getenv("TRAINING_L2", "0.01"))
TRAINING_BATCH_SIZE = 32
TRAINING_VALIDATION_SPLIT = 0.2
TRAINING_EARLY_STOPPING_PATIENCE = 20
TRAINING_RANDOM_SEED = int(os.getenv("TRAINING_RANDOM_SEED", "42"))

# Margin sweep used by model-backed recommendations (fractions)
MARGIN_SWEEP_MIN = 0.05
MARGIN_SWEEP_MAX = 0.35
MARGIN_SWEEP_STEP = 0.005
CONSERVATIVE_MIN_WIN_PROB = 0.70
AGGRESSIVE_MIN_WIN_PROB = 0.45

# Confidence saturates once a model has seen this many real deals
CONFIDENCE_SATURATION_DEALS = 500

# Validation configuration
REQUIRED_ENV_VARS = ["SUPABASE_URL", "SUPABASE_SERVICE_KEY"]
