import sys
import subprocess
import shlex
import textwrap
import platform
import argparse

arg_parser = argparse.ArgumentParser(
    prog='pip_install_deps.py',
    description='installs dependencies'
)

arg_parser.add_argument('--numpy-version')


class UnsupportedDependency(Exception):
    pass


def pip_install(package, version=None):
    args = [
        sys.executable,
        '-m', 'pip', 'install',
        '--upgrade',
        '--only-binary', ':all:',
        package if version is None else f'{package}=={version}'
    ]
    args_s = ' '.join(shlex.quote(arg) for arg in args)
    sys.stderr.write(args_s + '\n')
    res = subprocess.run(
        args,
        stderr=subprocess.STDOUT,
        stdout=subprocess.PIPE)
    if res.returncode == 0:
        return
    output = res.stdout.decode('utf-8')
    is_unsupported = (
            ('Could not find a version that satisfies the requirement' in output) or
            ('The conflict is caused by' in output))
    if is_unsupported:
        raise UnsupportedDependency(output)
    else:
        sys.stderr.write(output + '\n')
        sys.exit(res.returncode)


def try_pip_install(package, version=None):
    try:
        pip_install(package, version)
    except UnsupportedDependency as e:
        msg = textwrap.indent(str(e), ' ' * 8)
        sys.stderr.write(f'    Ignored unsatisfiable dependency:\n{msg}\n')


def main(args):
    pip_install('pip')
    pip_install('setuptools')

    # The runtime dependency must always install.
    pip_install('cryptography')

    if args.numpy_version:
        try_pip_install('numpy', args.numpy_version)
    else:
        try_pip_install('numpy')
    try_pip_install('pyyaml')

    is_64bits = sys.maxsize > 2 ** 32
    is_cpython = platform.python_implementation() == 'CPython'
    is_final = sys.version_info.releaselevel == 'final'
    if is_64bits and is_cpython and is_final:
        # Ensure that we've managed to install the expected dependencies.
        import cryptography
        import numpy
        import yaml


if __name__ == "__main__":
    args = arg_parser.parse_args()
    main(args)
