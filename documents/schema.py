import graphene
from graphene_django import DjangoObjectType

from config.errors import ServiceError
from .models import Document
from . import services


def _current_user(info):
	user = getattr(info.context, 'user', None)
	if user and getattr(user, 'is_authenticated', False):
		return user
	return None


class DocumentType(DjangoObjectType):
	validated_by_name = graphene.String()

	class Meta:
		model = Document
		fields = (
			'id',
			'uploader',
			'order',
			'filename',
			'cid',
			'url',
			'sha256',
			'mime_type',
			'size',
			'document_type',
			'status',
			'validated_at',
			'rejection_reason',
			'created_at',
			'updated_at',
		)

	def resolve_validated_by_name(self, info):
		officer = self.validated_by
		return (officer.name or officer.email) if officer else None


class Query(graphene.ObjectType):
	my_documents = graphene.List(DocumentType)

	def resolve_my_documents(self, info):
		user = _current_user(info)
		if not user:
			return []
		return services.list_user_documents(user)


class SubmitDocument(graphene.Mutation):
	"""Record a document whose content is already pinned on IPFS"""
	class Arguments:
		filename = graphene.String(required=True)
		cid = graphene.String(required=True)
		order_id = graphene.ID()
		document_type = graphene.String()

	success = graphene.Boolean()
	errors = graphene.List(graphene.String)
	document = graphene.Field(DocumentType)

	@classmethod
	def mutate(cls, root, info, filename, cid, order_id=None, document_type=None):
		user = _current_user(info)
		if not user:
			return SubmitDocument(success=False, errors=["Authentication required"])
		try:
			document = services.submit_document(user, filename, cid, order_id, document_type)
		except ServiceError as e:
			return SubmitDocument(success=False, errors=[str(e)])
		return SubmitDocument(success=True, errors=None, document=document)


class Mutation(graphene.ObjectType):
	submit_document = SubmitDocument.Field()
