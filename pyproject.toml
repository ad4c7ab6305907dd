[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "xvsim"
version = "0.1.0"
description = "Model of a small RISC-V teaching kernel's Sv39 virtual memory, user library, shell parser, utilities and file-system image builder"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "operating-system",
    "risc-v",
    "sv39",
    "page-table",
    "elf",
    "file-system",
    "shell",
    "simulation",
    "education",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Education",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Education",
    "Topic :: System :: Operating System",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
xvsim-mkfs = "xvsim.mkfs:main"
xvsim-grep = "xvsim.grep:main"
xvsim-cat = "xvsim.coreutils:cat_main"
xvsim-echo = "xvsim.coreutils:echo_main"
xvsim-wc = "xvsim.coreutils:wc_main"
xvsim-ls = "xvsim.coreutils:ls_main"
xvsim-mkdir = "xvsim.coreutils:mkdir_main"
xvsim-rm = "xvsim.coreutils:rm_main"
xvsim-ln = "xvsim.coreutils:ln_main"
xvsim-kill = "xvsim.coreutils:kill_main"

[tool.hatch.build.targets.wheel]
packages = ["xvsim"]

[tool.pytest.ini_options]
addopts = "-ra"
