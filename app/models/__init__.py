#users and audit
from app.models.users.user_models import User
from app.models.support.activity_models import UserActivity

# Tickets
from app.models.tickets.ticket_models import Ticket, TicketStatusHistory

# Products
from app.models.products.product_models import Product

# Pricing
from app.models.pricing.pricing_models import AdminPricingSettings, Material, Process
