"""
SPDX-License-Identifier: Apache-2.0
"""

import setuptools

if __name__ == "__main__":
    setuptools.setup(
        name="mlintegrity",
        version="1.0.0",
        description="XML measurement log integrity verification for host attestation",
        license="Apache-2.0",
        python_requires=">=3.8",
        packages=setuptools.find_namespace_packages(include=["mlintegrity", "mlintegrity.*"]),
        install_requires=["PyYAML"],
        extras_require={"test": ["pytest"]},
        data_files=[("share/mlintegrity", ["config/verifier.conf", "config/logging.conf"])],
        entry_points={
            "console_scripts": [
                "mlintegrity-measurement-log=mlintegrity.cmd.measurement_log:main",
            ],
        },
    )
