"""
Static data for the last-resort extraction paths.

KNOWN_TESTS drives the free-text scan. CANNED_DATASETS is only served when
canned fallback is enabled, and such results are always marked degraded.
"""

KNOWN_TESTS = [
    "Appearance",
    "Assay",
    "Purity",
    "Water",
    "Residue on evaporation",
    "Density",
    "Refractive index",
    "Color",
    "Acidity",
    "Alkalinity",
    "Heavy metals",
    "Iron",
    "Chloride",
    "Sulfate",
    "Identification",
]

CANNED_DATASETS = [
    {
        "lot_markers": ["ACN"],
        "body_markers": ["ACETONITRILE", "75-05-8"],
        "product": {
            "name": "Acetonitrile",
            "code": "1698",
            "cas_number": "75-05-8",
        },
        "tests": [
            ("Appearance", "", "Clear, colorless liquid", "Conforms"),
            ("Assay (GC)", "%", "≥ 99.9", "99.98"),
            ("Water (KF)", "%", "≤ 0.01", "0.003"),
            ("Residue on evaporation", "ppm", "≤ 1", "< 1"),
            ("Color (APHA)", "", "≤ 5", "< 5"),
        ],
    },
    {
        "lot_markers": ["MEOH"],
        "body_markers": ["METHANOL", "67-56-1"],
        "product": {
            "name": "Methanol",
            "code": "1213",
            "cas_number": "67-56-1",
        },
        "tests": [
            ("Appearance", "", "Clear, colorless liquid", "Conforms"),
            ("Assay (GC)", "%", "≥ 99.9", "99.95"),
            ("Water (KF)", "%", "≤ 0.02", "0.008"),
            ("Acidity (as HCOOH)", "%", "≤ 0.002", "< 0.002"),
            ("Density (20℃)", "g/mL", "0.791 ~ 0.793", "0.792"),
        ],
    },
]
