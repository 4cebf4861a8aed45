from users import schema as users_schema
from banks import schema as banks_schema
from marketplace import schema as marketplace_schema
from orders import schema as orders_schema
from documents import schema as documents_schema
import graphene
import logging

logger = logging.getLogger(__name__)

class Query(
	users_schema.Query,
	banks_schema.Query,
	marketplace_schema.Query,
	orders_schema.Query,
	documents_schema.Query,
	graphene.ObjectType
):
	pass

class Mutation(
	users_schema.Mutation,
	banks_schema.Mutation,
	marketplace_schema.Mutation,
	orders_schema.Mutation,
	documents_schema.Mutation,
	graphene.ObjectType
):
	pass

# Register all types
types = [
	users_schema.UserType,
	users_schema.BankAccountType,
	banks_schema.BankType,
	banks_schema.BankUserType,
	marketplace_schema.ProductType,
	marketplace_schema.CartItemType,
	orders_schema.OrderType,
	orders_schema.DisputeType,
	documents_schema.DocumentType,
]

schema = graphene.Schema(
	query=Query,
	mutation=Mutation,
	types=types
)

__all__ = ['schema']
