"""Global constants for notemap."""

# Analysis defaults
DEFAULT_SAMPLE_SIZE = 2048
DEFAULT_SMOOTHING_FACTOR = 0.3

# Tempo defaults
DEFAULT_BPM = 120.0
TEMPO_WINDOW_SECONDS = 0.1
TEMPO_MAX_ANALYSIS_SECONDS = 30.0
TEMPO_MIN_ANALYSIS_SECONDS = 5.0
TEMPO_MIN_BPM = 80.0
TEMPO_MAX_BPM = 200.0

# Grid defaults
DEFAULT_SUBDIVISIONS_PER_BEAT = 4  # sixteenth notes
GRID_TOLERANCE = 0.4  # fraction of a subdivision a hit may sit off the grid

# Gameplay defaults
DEFAULT_LANES = 5
ROOT_LANE = 0
DEFAULT_HEAVY_NOTE_INTERVAL = 8

# Persistence
MAP_FILE_SUFFIX = "_BeatMap.json"
