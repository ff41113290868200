from .esme import Esme  # noqa: F401

from . import log  # noqa: F401
from . import tlv  # noqa: F401
from . import pdu  # noqa: F401
from . import codec  # noqa: F401
from . import errors  # noqa: F401
from . import builder  # noqa: F401
from . import options  # noqa: F401
from . import sequence  # noqa: F401
from . import correlater  # noqa: F401
from . import orchestrator  # noqa: F401


from .state import (  # noqa: F401
    BindMode,
    DataCoding,
    SmppCommand,
    CommandStatus,
    SmppDataCoding,
    SmppSessionState,
)

from . import __version__  # noqa: F401
