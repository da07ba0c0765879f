"""
agora.api.schema — GraphQL Facade
==================================

graphene schema over the chain client and the relational store.  Chain
records come straight from :class:`~agora.services.chain_client.ChainClient`;
comments, profiles and notifications are read per resolver through a
short-lived session.

Resolvers are synchronous and run inside the ``/api/graphql`` endpoint's
threadpool worker.  The execution context is a :class:`GraphQLContext`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import graphene
from graphene.types.generic import GenericScalar
from graphql import GraphQLError
from sqlalchemy import Engine

from agora.config import AgoraConfig
from agora.constants import human_readable
from agora.database.engine import get_session
from agora.engine.chain import Coin, StakeType
from agora.services import comment_service, notification_service
from agora.services.chain_client import ChainClient
from agora.services.notification_dispatcher import NotificationDispatcher
from agora.services.user_service import UserProfile, profile_by_address, translate_to_user_mentions

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class GraphQLContext:
    engine: Engine
    chain: ChainClient
    config: AgoraConfig
    address: str | None = None
    dispatcher: NotificationDispatcher | None = None


def _require_address(info) -> str:
    address = info.context.address
    if not address:
        raise GraphQLError("Not authenticated")
    return address


def _profile(info, address: str) -> UserProfile:
    with get_session(info.context.engine) as session:
        profile = profile_by_address(session, address)
    return profile or UserProfile(full_name="", bio="", avatar_url="", username="", address=address)


def _user_mentions(info, body: str) -> str:
    try:
        with get_session(info.context.engine) as session:
            return translate_to_user_mentions(session, body, info.context.config.profile_url_prefix)
    except Exception:
        logger.exception("Mention translation failed; returning raw body")
        return body


# ---------------------------------------------------------------------------
# Types
# ---------------------------------------------------------------------------
class CoinType(graphene.ObjectType):
    class Meta:
        name = "Coin"

    # 64-bit amounts overflow GraphQL Int.
    amount = graphene.String()
    denom = graphene.String()
    human_readable = graphene.String()

    def resolve_amount(root: Coin, info):
        return str(root.amount)

    def resolve_human_readable(root: Coin, info):
        return human_readable(root.amount)


class UserType(graphene.ObjectType):
    class Meta:
        name = "User"

    address = graphene.String()
    username = graphene.String()
    full_name = graphene.String()
    avatar_url = graphene.String()
    bio = graphene.String()


class CommunityType(graphene.ObjectType):
    class Meta:
        name = "Community"

    id = graphene.String()
    name = graphene.String()
    description = graphene.String()
    claims = graphene.List(lambda: ClaimType)

    def resolve_claims(root, info):
        return info.context.chain.claims(root.id)


class CommentType(graphene.ObjectType):
    class Meta:
        name = "Comment"

    id = graphene.Int()
    parent_id = graphene.Int()
    claim_id = graphene.Int()
    argument_id = graphene.Int()
    element_id = graphene.Int()
    community_id = graphene.String()
    body = graphene.String()
    creator = graphene.Field(UserType)
    created_at = graphene.DateTime()

    def resolve_body(root, info):
        return _user_mentions(info, root.body)

    def resolve_creator(root, info):
        return _profile(info, root.creator)


class ClaimArgumentType(graphene.ObjectType):
    class Meta:
        name = "ClaimArgument"

    id = graphene.Int()
    claim_id = graphene.Int()
    community_id = graphene.String()
    summary = graphene.String()
    body = graphene.String(raw=graphene.Boolean(default_value=False))
    creator = graphene.Field(UserType)
    vote = graphene.Boolean()
    upvote_count = graphene.Int()
    edited = graphene.Boolean()
    created_time = graphene.DateTime()
    edited_time = graphene.DateTime()

    def resolve_body(root, info, raw=False):
        if raw:
            return root.body
        return _user_mentions(info, root.body)

    def resolve_creator(root, info):
        return _profile(info, root.creator)

    def resolve_vote(root, info):
        return root.stake_type == StakeType.BACKING


class ClaimType(graphene.ObjectType):
    class Meta:
        name = "Claim"

    id = graphene.Int()
    community_id = graphene.String()
    community = graphene.Field(CommunityType)
    body = graphene.String()
    source = graphene.String()
    created_time = graphene.DateTime()
    creator = graphene.Field(UserType)
    arguments = graphene.List(ClaimArgumentType)
    argument_count = graphene.Int()
    comments = graphene.List(CommentType)
    comment_count = graphene.Int()

    def resolve_community(root, info):
        return info.context.chain.community(root.community_id)

    def resolve_creator(root, info):
        return _profile(info, root.creator)

    def resolve_arguments(root, info):
        return info.context.chain.claim_arguments(root.id)

    def resolve_argument_count(root, info):
        return len(info.context.chain.claim_arguments(root.id))

    def resolve_comments(root, info):
        with get_session(info.context.engine) as session:
            return comment_service.comments_by_claim_id(session, root.id)

    def resolve_comment_count(root, info):
        with get_session(info.context.engine) as session:
            return len(comment_service.comments_by_claim_id(session, root.id))


class NotificationEventType(graphene.ObjectType):
    class Meta:
        name = "NotificationEvent"

    id = graphene.Int()
    type = graphene.String()
    type_id = graphene.Int()
    message = graphene.String()
    meta = GenericScalar()
    read = graphene.Boolean()
    seen = graphene.Boolean()
    timestamp = graphene.DateTime()


class TransactionType(graphene.ObjectType):
    class Meta:
        name = "Transaction"

    id = graphene.Int()
    type = graphene.String()
    amount = graphene.Field(CoinType)
    community_id = graphene.String()
    reference_id = graphene.Int()
    claim_id = graphene.Int()
    created_time = graphene.DateTime()

    def resolve_amount(root, info):
        return Coin(root.signed_amount, root.amount.denom)


# ---------------------------------------------------------------------------
# Query
# ---------------------------------------------------------------------------
class Query(graphene.ObjectType):
    communities = graphene.List(CommunityType)
    community = graphene.Field(CommunityType, id=graphene.String(required=True))
    claims = graphene.List(ClaimType, community_id=graphene.String())
    claim = graphene.Field(ClaimType, id=graphene.Int(required=True))
    claim_argument = graphene.Field(ClaimArgumentType, id=graphene.Int(required=True))
    claim_arguments = graphene.List(ClaimArgumentType, claim_id=graphene.Int(required=True))
    comments = graphene.List(
        CommentType,
        claim_id=graphene.Int(),
        argument_id=graphene.Int(),
        element_id=graphene.Int(),
    )
    notifications = graphene.List(
        NotificationEventType,
        limit=graphene.Int(default_value=50),
        offset=graphene.Int(default_value=0),
    )
    unread_notifications_count = graphene.Int()
    transactions = graphene.List(TransactionType, address=graphene.String())

    def resolve_communities(root, info):
        return info.context.chain.communities()

    def resolve_community(root, info, id):
        return info.context.chain.community(id)

    def resolve_claims(root, info, community_id=None):
        return info.context.chain.claims(community_id)

    def resolve_claim(root, info, id):
        return info.context.chain.claim(id)

    def resolve_claim_argument(root, info, id):
        return info.context.chain.argument(id)

    def resolve_claim_arguments(root, info, claim_id):
        return info.context.chain.claim_arguments(claim_id)

    def resolve_comments(root, info, claim_id=None, argument_id=None, element_id=None):
        with get_session(info.context.engine) as session:
            return comment_service.comments(session, claim_id, argument_id, element_id)

    def resolve_notifications(root, info, limit, offset):
        address = _require_address(info)
        with get_session(info.context.engine) as session:
            return notification_service.notifications_for(session, address, limit, offset)

    def resolve_unread_notifications_count(root, info):
        address = _require_address(info)
        with get_session(info.context.engine) as session:
            return notification_service.unread_count(session, address)

    def resolve_transactions(root, info, address=None):
        address = address or _require_address(info)
        return info.context.chain.transactions(address)


# ---------------------------------------------------------------------------
# Mutation
# ---------------------------------------------------------------------------
class AddComment(graphene.Mutation):
    class Arguments:
        parent = graphene.Int(required=True)
        body = graphene.String(required=True)

    Output = CommentType

    def mutate(root, info, parent, body):
        address = _require_address(info)
        try:
            with get_session(info.context.engine) as session:
                comment = comment_service.add_reply(session, parent, body, creator=address)
        except comment_service.InvalidParentError as exc:
            raise GraphQLError(str(exc)) from exc
        dispatcher = info.context.dispatcher
        if dispatcher is not None:
            dispatcher.send_comment(comment_service.notification_request_for(comment))
        return comment


class Mutation(graphene.ObjectType):
    add_comment = AddComment.Field()


schema = graphene.Schema(query=Query, mutation=Mutation)
