"""
Firing up a JVM for Orekit and loading the Orekit data.

By default the data comes from the ``orekitdata`` pip package. A directory or
zip file can be used instead by setting ``RADEC_OD_OREKIT_DATA``.
"""

import logging
import os

import jdk4py
import jpype
import jpype.imports  # noqa: F401  enables ``from org.orekit... import ...``
import orekit_jpype as orekit

logger = logging.getLogger(__name__)

OREKIT_DATA_ENV = 'RADEC_OD_OREKIT_DATA'

_data_loaded = False


def init_orekit(data_path=None):
    """Start the JVM (once per process) and load the Orekit data."""
    global _data_loaded

    if not jpype.isJVMStarted():
        if 'JAVA_HOME' not in os.environ:
            os.environ['JAVA_HOME'] = str(jdk4py.JAVA_HOME)
        orekit.initVM()
        logger.debug('JVM started, JAVA_HOME=%s', os.environ['JAVA_HOME'])

    # pyhelpers imports java packages at load time, the JVM must be running
    from orekit_jpype.pyhelpers import setup_orekit_data

    if _data_loaded and data_path is None:
        return

    data_path = data_path or os.environ.get(OREKIT_DATA_ENV)
    if data_path:
        if not os.path.exists(data_path):
            raise FileNotFoundError(f'Orekit data not found: {data_path}')
        setup_orekit_data(filenames=data_path, from_pip_library=False)
        logger.info('Orekit data loaded from %s', data_path)
    else:
        setup_orekit_data(from_pip_library=True)
        logger.debug('Orekit data loaded from the orekitdata package')
    _data_loaded = True
