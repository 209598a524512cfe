"""
Initial conditions for the named three-body configurations. Units follow the
figure-eight solution: G = 1 and (mostly) unit masses.
"""

from typing import Any, Dict, List

PRESET_DEFINITIONS: List[Dict[str, Any]] = [
    {
        # Chenciner & Montgomery, "A remarkable periodic solution of the
        # three-body problem in the case of equal masses"
        "id": "figure-eight",
        "name": "Figure Eight",
        "description": "Chenciner-Montgomery figure-eight stable orbit",
        "category": "stable-orbits",
        "bodies": [
            {"id": 1, "x": -0.97000436, "y": 0.24308753, "vx": 0.466203685, "vy": 0.43236573, "mass": 1, "color": "#ff0000"},
            {"id": 2, "x": 0.97000436, "y": -0.24308753, "vx": 0.466203685, "vy": 0.43236573, "mass": 1, "color": "#00ff00"},
            {"id": 3, "x": 0, "y": 0, "vx": -0.93240737, "vy": -0.86473146, "mass": 1, "color": "#0000ff"},
        ],
        "settings": {"timeSpeed": 1.0, "trailLength": 100},
    },
    {
        "id": "lagrange-points",
        "name": "Lagrange Points",
        "description": "L4 Lagrange point configuration with stable triangular equilibrium",
        "category": "equilibrium",
        "bodies": [
            {"id": 1, "x": -1.0, "y": 0, "vx": 0, "vy": -0.5, "mass": 1, "color": "#ff6600"},
            {"id": 2, "x": 1.0, "y": 0, "vx": 0, "vy": 0.5, "mass": 1, "color": "#6600ff"},
            # Light test particle at L4
            {"id": 3, "x": 0.0, "y": 1.732, "vx": -0.866, "vy": 0.0, "mass": 0.001, "color": "#00ff66"},
        ],
        "settings": {"timeSpeed": 0.8, "trailLength": 200, "showVelocityVectors": True},
    },
    {
        "id": "butterfly",
        "name": "Butterfly",
        "description": "Creates beautiful butterfly-like trajectory patterns",
        "category": "chaotic",
        "bodies": [
            {"id": 1, "x": -1.0, "y": 0, "vx": 0.347111, "vy": 0.532728, "mass": 1, "color": "#ff0080"},
            {"id": 2, "x": 1.0, "y": 0, "vx": 0.347111, "vy": 0.532728, "mass": 1, "color": "#8000ff"},
            {"id": 3, "x": 0, "y": 0, "vx": -0.694222, "vy": -1.065456, "mass": 1, "color": "#00ff80"},
        ],
        "settings": {"timeSpeed": 0.8, "trailLength": 200},
    },
    {
        "id": "circular-chain",
        "name": "Circular Chain",
        "description": "Three equal masses in stable rotating triangle formation",
        "category": "periodic",
        "bodies": [
            {"id": 1, "x": 1.0, "y": 0.0, "vx": 0.0, "vy": 0.816, "mass": 1, "color": "#ff4500"},
            {"id": 2, "x": -0.5, "y": 0.866, "vx": -0.707, "vy": -0.408, "mass": 1, "color": "#4169e1"},
            {"id": 3, "x": -0.5, "y": -0.866, "vx": 0.707, "vy": -0.408, "mass": 1, "color": "#00ff7f"},
        ],
        "settings": {"timeSpeed": 0.8, "trailLength": 200},
    },
    {
        "id": "trefoil",
        "name": "Trefoil",
        "description": "Three-leaf clover pattern with intricate loops",
        "category": "periodic",
        "bodies": [
            {"id": 1, "x": -1.05, "y": 0, "vx": 0.2, "vy": 0.6, "mass": 1, "color": "#ff6b35"},
            {"id": 2, "x": 0.525, "y": 0.909, "vx": -0.5, "vy": -0.1, "mass": 1, "color": "#4ecdc4"},
            {"id": 3, "x": 0.525, "y": -0.909, "vx": 0.3, "vy": -0.5, "mass": 1, "color": "#a8e6cf"},
        ],
        "settings": {"timeSpeed": 0.9, "trailLength": 400},
    },
    {
        "id": "broucke",
        "name": "Broucke Orbit",
        "description": "Periodic orbit from Broucke's family of solutions",
        "category": "periodic",
        "bodies": [
            {"id": 1, "x": 0.306893, "y": 0.125507, "vx": -0.711203, "vy": 0.442351, "mass": 1, "color": "#ff1744"},
            {"id": 2, "x": -0.306893, "y": -0.125507, "vx": -0.711203, "vy": 0.442351, "mass": 1, "color": "#2979ff"},
            {"id": 3, "x": 0, "y": 0, "vx": 1.422406, "vy": -0.884702, "mass": 1, "color": "#00e676"},
        ],
        "settings": {"timeSpeed": 0.7, "trailLength": 250},
    },
    {
        "id": "goerli",
        "name": "Goerli Flower",
        "description": "Flower-like pattern with multiple petals",
        "category": "periodic",
        "bodies": [
            {"id": 1, "x": -0.51394, "y": 0.88984, "vx": 0.37415, "vy": 0.21605, "mass": 1, "color": "#e91e63"},
            {"id": 2, "x": 1.02787, "y": 0, "vx": 0.37415, "vy": 0.21605, "mass": 1, "color": "#9c27b0"},
            {"id": 3, "x": -0.51394, "y": -0.88984, "vx": -0.7483, "vy": -0.4321, "mass": 1, "color": "#3f51b5"},
        ],
        "settings": {"timeSpeed": 0.6, "trailLength": 350},
    },
    {
        "id": "infinity",
        "name": "Infinity Symbol",
        "description": "Creates infinity symbol and related patterns",
        "category": "periodic",
        "bodies": [
            {"id": 1, "x": -0.8, "y": 0.6, "vx": 0.1, "vy": -0.4, "mass": 1, "color": "#ff5722"},
            {"id": 2, "x": 0.8, "y": -0.6, "vx": 0.1, "vy": -0.4, "mass": 1, "color": "#00bcd4"},
            {"id": 3, "x": 0, "y": 0, "vx": -0.2, "vy": 0.8, "mass": 1, "color": "#8bc34a"},
        ],
        "settings": {"timeSpeed": 0.8, "trailLength": 200},
    },
    {
        "id": "spiral",
        "name": "Spiral Dance",
        "description": "Spiral and rosette patterns with complex trajectories",
        "category": "chaotic",
        "bodies": [
            {"id": 1, "x": -0.3, "y": 0.7, "vx": -0.6, "vy": -0.2, "mass": 1.2, "color": "#ff9800"},
            {"id": 2, "x": 0.9, "y": -0.1, "vx": 0.1, "vy": 0.7, "mass": 0.8, "color": "#673ab7"},
            {"id": 3, "x": -0.6, "y": -0.6, "vx": 0.5, "vy": -0.5, "mass": 1.0, "color": "#009688"},
        ],
        "settings": {"timeSpeed": 0.5, "trailLength": 500},
    },
]
