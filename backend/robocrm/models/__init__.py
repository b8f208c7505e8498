from .auth import User, SessionToken
from .settings import SystemSetting, SettingAudit
from .resellers import Reseller
from .clients import Client, Dictionary, ClientClassification
from .pricing import RobotPricing, LeasePricing, Item
from .offers import Offer, OfferItem, OfferVersion
from .contracts import Contract, ContractVersion, ContractEmailLog
from .campaigns import Campaign, CampaignClient, EmailTemplate, CampaignMailing
from .forecasts import MonthlyRevenue, MonthlyRobotsDelivered

__all__ = [
    'User', 'SessionToken',
    'SystemSetting', 'SettingAudit',
    'Reseller',
    'Client', 'Dictionary', 'ClientClassification',
    'RobotPricing', 'LeasePricing', 'Item',
    'Offer', 'OfferItem', 'OfferVersion',
    'Contract', 'ContractVersion', 'ContractEmailLog',
    'Campaign', 'CampaignClient', 'EmailTemplate', 'CampaignMailing',
    'MonthlyRevenue', 'MonthlyRobotsDelivered',
]
