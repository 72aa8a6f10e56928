"""
Sample records: five cats with 4-dimensional feature vectors
(fur length, whisker length, eye brightness, purr intensity).
"""

SAMPLE_CATS = [
    ("cat:1", "Whiskers", [0.1, 0.8, 0.3, 0.6]),
    ("cat:2", "Mittens", [0.2, 0.7, 0.4, 0.5]),
    ("cat:3", "Shadow", [0.9, 0.2, 0.1, 0.3]),
    ("cat:4", "Alpha", [0.5, 0.2, 0.3, 0.3]),
    ("cat:5", "Yoda", [0.8, 0.1, 0.1, 0.4]),
]

SAMPLE_QUERY = [0.15, 0.75, 0.35, 0.55]


def load_sample_cats(store):
    """Write the sample cats into ``store`` and return the stored records."""
    return [store.put(key, name, vector, {"species": "cat"}) for key, name, vector in SAMPLE_CATS]
