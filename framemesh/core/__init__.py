# Core data models and constants
from .data_models import ElementMeta, MemberType, RawMember, SectionShape
from .constants import DEFAULT_RIGID_DOF, RIGID_ID_START
