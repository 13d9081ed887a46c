# jaxpgm/utils/diagnostics.py
"""
jaxpgm system diagnostics and requirement checking.

Reports which libraries and compute devices are usable so a caller can
tell which backends `get_backend` will be able to build.
"""

import importlib
from typing import Dict, List


_REQUIRED = ("numpy", "scipy", "pyarrow", "pandas", "psutil")
_OPTIONAL = ("jax",)

_INSTALL_MAP = {
    "numpy": "pip install numpy",
    "scipy": "pip install scipy",
    "pyarrow": "pip install pyarrow",
    "pandas": "pip install pandas",
    "psutil": "pip install psutil",
    "jax": "pip install jax jaxlib",
    "gpu": 'pip install "jax[cuda12]"',
}


def _module_version(name: str):
    try:
        module = importlib.import_module(name)
    except ImportError:
        return None
    return getattr(module, "__version__", "unknown")


def check_system_requirements(verbose: bool = True) -> Dict[str, bool]:
    """
    Check library dependencies and device availability.

    Parameters
    ----------
    verbose : bool, default True
        Whether to print detailed status information

    Returns
    -------
    Dict[str, bool]
        Dictionary mapping requirement names to availability status
    """
    if verbose:
        print("🔍 Checking jaxpgm system requirements...")

    requirements = {}
    for name in _REQUIRED + _OPTIONAL:
        version = _module_version(name)
        requirements[name] = version is not None
        if verbose:
            if version is not None:
                print(f"   ✅ {name}: v{version}")
            elif name in _OPTIONAL:
                print(f"   ⚠️  {name}: Not available (numpy backend only)")
            else:
                print(f"   ❌ {name}: Not available")

    from .jax_utils import get_devices
    requirements["gpu"] = len(get_devices("gpu")) > 0
    requirements["tpu"] = len(get_devices("tpu")) > 0

    from ..backends import available_backends
    backends = available_backends()
    requirements["numpy_backend"] = "numpy" in backends
    requirements["jax_backend"] = "jax" in backends

    if verbose:
        print(f"   {'✅' if requirements['gpu'] else '⚠️'} GPU: {'Available' if requirements['gpu'] else 'Not available'}")
        print(f"   Backends: {', '.join(backends)}")
        if all(requirements[name] for name in _REQUIRED):
            print("✅ All critical requirements met!")
        else:
            print("\n❌ Critical requirements not met!")
            for command in suggest_installation_commands(missing_requirements(requirements)):
                print(f"   - {command}")

    return requirements


def missing_requirements(requirements: Dict[str, bool]) -> List[str]:
    """Names of required dependencies reported as unavailable."""
    return [name for name in _REQUIRED if not requirements.get(name, False)]


def get_feature_status() -> Dict[str, Dict[str, bool]]:
    """
    Get detailed status of jaxpgm features and capabilities.

    Returns
    -------
    Dict[str, Dict[str, bool]]
        Nested dictionary with feature categories and their availability
    """
    requirements = check_system_requirements(verbose=False)

    return {
        'backends': {
            'numpy': requirements['numpy_backend'],
            'jax': requirements['jax_backend'],
        },
        'devices': {
            'cpu': True,
            'gpu': requirements['gpu'],
            'tpu': requirements['tpu'],
        },
        'dependencies': {name: requirements[name] for name in _REQUIRED + _OPTIONAL},
    }


def suggest_installation_commands(missing: List[str]) -> List[str]:
    """
    Suggest pip install commands for missing requirements.

    Parameters
    ----------
    missing : List[str]
        List of missing requirement names

    Returns
    -------
    List[str]
        List of pip install commands
    """
    return [_INSTALL_MAP[name] for name in missing if name in _INSTALL_MAP]
