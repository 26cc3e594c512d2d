"""
Reference tables for the HMPI Monitor: regulatory metal limits, monitored
locations and city metadata used by adapters, the fallback generator and the
insight synthesizer.
"""

# Single unit system for every HMPI computation
METAL_UNIT = "μg/L"

# Permissible limits (Si) in μg/L, drinking-water guideline values
METAL_LIMITS = {
    "Lead": 10.0,
    "Cadmium": 3.0,
    "Mercury": 6.0,
    "Arsenic": 10.0,
    "Chromium": 50.0,
    "Nickel": 70.0,
    "Zinc": 5000.0,
    "Copper": 2000.0,
}

# Provider parameter keys -> canonical metal names
METAL_KEYS = {
    "lead": "Lead", "pb": "Lead",
    "cadmium": "Cadmium", "cd": "Cadmium",
    "mercury": "Mercury", "hg": "Mercury",
    "arsenic": "Arsenic", "as": "Arsenic",
    "chromium": "Chromium", "cr": "Chromium",
    "nickel": "Nickel", "ni": "Nickel",
    "zinc": "Zinc", "zn": "Zinc",
    "copper": "Copper", "cu": "Copper",
}

# Metals checked pairwise by the correlation analysis
CORRELATED_METALS = ["Lead", "Mercury", "Cadmium", "Arsenic", "Chromium"]

# Monitored river sites used when every live source is down.
# base_factor scales each metal's baseline for the site.
FALLBACK_LOCATIONS = [
    {"name": "Delhi Yamuna", "lat": 28.6139, "lon": 77.2090, "base_factor": 1.30},
    {"name": "Mumbai Mithi", "lat": 19.0760, "lon": 72.8777, "base_factor": 1.15},
    {"name": "Chennai Marina", "lat": 13.0827, "lon": 80.2707, "base_factor": 0.90},
    {"name": "Kolkata Hooghly", "lat": 22.5726, "lon": 88.3639, "base_factor": 1.10},
    {"name": "Hyderabad Musi", "lat": 17.3850, "lon": 78.4867, "base_factor": 1.00},
    {"name": "Bangalore Vrishabhavathi", "lat": 12.9716, "lon": 77.5946, "base_factor": 0.95},
]

# Baseline concentration of each metal as a fraction of its limit
FALLBACK_METAL_BASELINES = {
    "Lead": 0.90,
    "Cadmium": 0.93,
    "Mercury": 0.75,
    "Arsenic": 0.91,
    "Zinc": 0.75,
    "Copper": 0.70,
    "Chromium": 0.76,
    "Nickel": 0.83,
}

WAQI_CITIES = ["delhi", "mumbai", "chennai", "kolkata", "hyderabad", "bangalore"]

SAFAR_CITIES = {
    "delhi": (28.6139, 77.2090),
    "mumbai": (19.0760, 72.8777),
    "pune": (18.5204, 73.8567),
    "ahmedabad": (23.0225, 72.5714),
    "kolkata": (22.5726, 88.3639),
}

CITY_POPULATIONS = {
    "Delhi": 32000000,
    "Mumbai": 21000000,
    "Kolkata": 15000000,
    "Chennai": 11000000,
    "Bangalore": 13000000,
    "Hyderabad": 10000000,
}
DEFAULT_LOCATION_POPULATION = 5000000
DEFAULT_REGION_POPULATION = 1000000
