"""
Configuration for the offline PCA / k-NN precompute job.
Sizes are kept small so the JSON fixture stays light enough for the app.
"""

IMAGE_SIDE = 28
DIM = IMAGE_SIDE * IMAGE_SIDE

TRAIN_SIZE = 360
TEST_SIZE = 140
SEED = 42

MAX_COMPONENTS = 30
PRESET_COMPONENTS = (6, 12, 14, 18, 30)
EIGENDIGITS_TO_SAVE = 12
KNN_NEIGHBORS = 5

ROUND_DIGITS = 5

# Bump when the JSON layout changes; the app warns on a mismatch.
SCHEMA_VERSION = 1

DEFAULT_OUTPUT = "precomputed_results/pca_presets.json"
DEFAULT_DATA_DIR = "./data"
