from ahaar.models.brand import Brand
from ahaar.models.user import PasswordHistory, RemovedUser, User
from ahaar.models.dining_table import DiningTable
from ahaar.models.category import Category
from ahaar.models.menu_item import MenuItem
from ahaar.models.member import Member
from ahaar.models.staff import Staff
from ahaar.models.supplier import Supplier
from ahaar.models.plan import Plan, PlanPurchase
from ahaar.models.sold_invoice import SoldInvoice
