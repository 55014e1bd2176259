# Models package - database tables
from mdmc_crm.models.user import User
from mdmc_crm.models.token import RefreshToken
from mdmc_crm.models.campaign import Campaign, CampaignMember
from mdmc_crm.models.lead import Lead
