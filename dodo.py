from doit.action import CmdAction
import importlib
import pathlib
import pkgutil


OUTPUT_DIR = pathlib.Path("output")

# trained network, either a training checkpoint (with X_mean.pth etc. next to it) or a directory of PFNN .bin files
checkpoint_path = OUTPUT_DIR / "final_checkpoint.pth"
holden_bin_dir = pathlib.Path("../PFNN/demo/network/pfnn")

params_path = OUTPUT_DIR / "pfnn_params.pth"
mocap_path = "../PFNN/data/animations/LocomotionFlat01_000.bvh"

DOIT_CONFIG = {"default_tasks": ["test"]}


def get_python_files_in_module(module_name):
    result = []
    module = importlib.import_module(module_name)
    for importer, mod_name, is_pkg in pkgutil.walk_packages(module.__path__, module_name + "."):
        if not is_pkg:
            result.append(mod_name.replace(".", "/") + ".py")
    return result


bioanim_deps = get_python_files_in_module("bioanim")


def task_export_params():
    """Convert the trained network into a single parameter file"""
    code_deps = [__file__, "export_params.py"] + bioanim_deps
    if holden_bin_dir.exists():
        return {
            "file_dep": code_deps,
            "targets": [params_path],
            "actions": [f"python export_params.py holden {holden_bin_dir} {params_path}"],
            "clean": True,
        }
    return {
        "file_dep": code_deps + [checkpoint_path],
        "targets": [params_path],
        "actions": [f"python export_params.py checkpoint {checkpoint_path} {OUTPUT_DIR} {params_path}"],
        "clean": True,
    }


def task_simulate():
    """Run the controller headless with a scripted intent, writes the root path"""
    return {
        "file_dep": [__file__, "simulate.py", params_path] + bioanim_deps,
        "targets": [OUTPUT_DIR / "root_path.npy"],
        "actions": [CmdAction(f"python simulate.py {params_path} {mocap_path}", buffering=1)],
        "clean": True,
    }


def task_test():
    """Run the unit tests"""
    return {
        "actions": ["python -m pytest tests"],
        "verbosity": 2,
    }
