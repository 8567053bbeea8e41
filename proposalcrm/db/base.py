from proposalcrm.db.base_class import Base

# Import models to register metadata for Base.metadata.create_all in tests
from proposalcrm.models.customer import Customer  # noqa: F401
from proposalcrm.models.product import Product  # noqa: F401
from proposalcrm.models.proposal import Proposal  # noqa: F401
from proposalcrm.models.proposal_item import ProposalItem  # noqa: F401
from proposalcrm.models.engineering_line import EngineeringLine  # noqa: F401
from proposalcrm.models.expense_line import ExpenseLine  # noqa: F401
from proposalcrm.models.custom_tax_line import CustomTaxLine  # noqa: F401
from proposalcrm.models.proposal_setting import ProposalSetting  # noqa: F401
from proposalcrm.models.line_template import LineTemplate  # noqa: F401
