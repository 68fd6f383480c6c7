"""
Built-in map knowledge: the three supported maps and the bright-star list
used for star overlays when no live catalogue is reachable.

Plain dicts here; maps.registry turns them into MapDescriptor objects. The
same schema is accepted from YAML (see MapRegistry.from_yaml).
"""
from __future__ import annotations

from typing import Any, Dict, List


BUILTIN_MAPS: Dict[str, Dict[str, Any]] = {
    "unwise": {
        "title": "unWISE NEO6",
        "type": "astronomical_survey",
        "description": "Wide-field Infrared Survey Explorer (WISE) astronomical survey data",
        "coordinate_system": "equatorial",
        "bounds": {"ra": {"min": 0, "max": 360}, "dec": {"min": -90, "max": 90}},
        "max_level": 11,
        "point_annotated": True,
        "attribution": "unWISE / NASA/JPL-Caltech / D. Lang (Perimeter Institute)",
        "notable_objects": {
            "galactic center": {"ra": 266.4, "dec": -29.0, "description": "Center of the Milky Way galaxy"},
            "andromeda galaxy": {"ra": 10.7, "dec": 41.3, "description": "Nearest major galaxy to Milky Way"},
            "orion nebula": {"ra": 83.8, "dec": -5.4, "description": "Famous star-forming region"},
            "vega": {"ra": 279.2, "dec": 38.8, "description": "Bright star in constellation Lyra"},
            "betelgeuse": {"ra": 88.8, "dec": 7.4, "description": "Red supergiant star in Orion"},
            "sirius": {"ra": 101.3, "dec": -16.7, "description": "Brightest star in the night sky"},
            "pleiades": {"ra": 56.8, "dec": 24.1, "description": "Famous star cluster"},
            "crab nebula": {"ra": 83.6, "dec": 22.0, "description": "Supernova remnant"},
        },
    },
    "andromeda": {
        "title": "Andromeda Galaxy",
        "type": "galaxy_image",
        "description": "High-resolution image of the Andromeda Galaxy (M31)",
        "coordinate_system": "image_pixels",
        "bounds": {"x": {"min": 0, "max": 69536}, "y": {"min": 0, "max": 22230}},
        "attribution": "ESA/Hubble",
        "notable_objects": {
            "galaxy center": {"x": 1500, "y": 20000, "description": "Central black hole and bulge of Andromeda"},
            "spiral arms": {"x": 25000, "y": 8000, "description": "Prominent spiral arm structure"},
            "star forming regions": {"x": 40000, "y": 13000, "description": "Active star formation areas"},
            "dust lanes": {"x": 30000, "y": 10000, "description": "Dark dust lanes in the galaxy"},
        },
    },
    "mars": {
        "title": "Mars",
        "type": "planetary_surface",
        "description": "Mars Context Camera (CTX) mosaic showing Martian surface",
        "coordinate_system": "planetary_geographic",
        "bounds": {"longitude": {"min": -180, "max": 180}, "latitude": {"min": -90, "max": 90}},
        "attribution": "Imagery: NASA, JPL, MSSS, Caltech/Murray Lab, Esri",
        "notable_objects": {
            "olympus mons": {"longitude": -133.8, "latitude": 18.65, "description": "Largest volcano in the solar system"},
            "valles marineris": {"longitude": -75.0, "latitude": -14.0, "description": "Largest canyon system on Mars"},
            "hellas basin": {"longitude": 70.0, "latitude": -42.4, "description": "Largest visible crater on Mars"},
            "polar ice cap": {"longitude": 0, "latitude": 90, "description": "North polar ice cap"},
            "gale crater": {"longitude": 137.8, "latitude": -5.4, "description": "Landing site of Curiosity rover"},
            "jezero crater": {"longitude": 77.5, "latitude": 18.4, "description": "Landing site of Perseverance rover"},
            "chryse planitia": {"longitude": -27.0, "latitude": 22.5, "description": "Landing site of Viking 1"},
            "utopia planitia": {"longitude": 117.5, "latitude": 50.0, "description": "Landing site of Viking 2"},
        },
    },
}


BRIGHT_STARS: List[Dict[str, Any]] = [
    {"name": "Sirius", "ra": 101.2875, "dec": -16.7161, "mag": -1.46},
    {"name": "Canopus", "ra": 95.9879, "dec": -52.6957, "mag": -0.74},
    {"name": "Arcturus", "ra": 213.9154, "dec": 19.1824, "mag": -0.05},
    {"name": "Alpha Centauri", "ra": 219.9021, "dec": -60.8339, "mag": -0.27},
    {"name": "Vega", "ra": 279.2347, "dec": 38.7837, "mag": 0.03},
    {"name": "Capella", "ra": 79.1723, "dec": 45.9979, "mag": 0.08},
    {"name": "Rigel", "ra": 78.6345, "dec": -8.2016, "mag": 0.12},
    {"name": "Procyon", "ra": 114.8255, "dec": 5.225, "mag": 0.38},
    {"name": "Achernar", "ra": 24.4286, "dec": -57.2367, "mag": 0.46},
    {"name": "Betelgeuse", "ra": 88.7929, "dec": 7.4071, "mag": 0.5},
    {"name": "Hadar", "ra": 210.9558, "dec": -60.3731, "mag": 0.61},
    {"name": "Altair", "ra": 297.6958, "dec": 8.8683, "mag": 0.77},
    {"name": "Aldebaran", "ra": 68.98, "dec": 16.5093, "mag": 0.87},
    {"name": "Antares", "ra": 247.3519, "dec": -26.432, "mag": 1.09},
    {"name": "Spica", "ra": 201.2983, "dec": -11.1613, "mag": 0.98},
    {"name": "Pollux", "ra": 116.3289, "dec": 28.0262, "mag": 1.14},
    {"name": "Fomalhaut", "ra": 344.4128, "dec": -29.6222, "mag": 1.16},
    {"name": "Deneb", "ra": 310.3579, "dec": 45.2803, "mag": 1.25},
    {"name": "Regulus", "ra": 152.0929, "dec": 11.9672, "mag": 1.35},
    {"name": "Bellatrix", "ra": 81.2828, "dec": 6.3497, "mag": 1.64},
]
