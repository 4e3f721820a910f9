import logging
from sqlalchemy.ext.asyncio import AsyncSession
from twilio.twiml.messaging_response import MessagingResponse
from shajara.errors import ErrorKind, FamilyTreeError
from shajara.models.tree import Role, EDIT_ROLES
from shajara.models.user import User
from shajara.services.invite_service import InviteService
from shajara.services.member_service import MemberService
from shajara.services.merge_service import MergeService
from shajara.services.render_service import generate_text_tree, relation_name
from shajara.services.state_store import Action, ConversationState, StateStore, Step, state_store
from shajara.services.tree_service import TreeService
from shajara.services.user_service import UserService
from shajara.utils.validators import normalize_phone, validate_birth_year, validate_full_name, validate_relation_type

logger = logging.getLogger(__name__)

MAIN_MENU = (
    "🌳 *Family Tree Bot* 🌳\n\n"
    "1. 👁 View Tree\n"
    "2. ➕ Add Member\n"
    "3. 🗑 Remove Member\n"
    "4. 📤 Invite to Tree\n"
    "5. 🔑 Join a Tree\n"
    "6. 🔗 Merge Trees\n"
    "7. 📬 Pending Merges\n"
    "8. ℹ️ Help"
)

RELATION_MENU = (
    "Who are you adding?\n"
    "1. Father\n"
    "2. Mother\n"
    "3. Sibling\n"
    "4. Child\n"
    "5. Spouse"
)

# Corrective prompts per error kind; the dialogue input gathered so far is kept
ERROR_PROMPTS = {
    ErrorKind.DUPLICATE_RELATION: "⚠️ This relative has already been added. Choose another relative or send 'reset'.",
    ErrorKind.INVALID_RELATION: "❌ These relatives cannot be linked this way. Choose another relation type.",
    ErrorKind.NOT_FOUND: "❌ Not found. Please check the number and try again.",
    ErrorKind.UNAUTHORIZED: "🔒 You are not allowed to do that.",
    ErrorKind.INVALID_STATE: "This request has already been handled.",
    ErrorKind.DATABASE: "❌ Something went wrong while saving. Please try again.",
    ErrorKind.STATE: "Your session expired. Send 'menu' to start again.",
}

GENERIC_ERROR = "An error occurred. Please try again or type 'reset'."

class ChatbotService:
    def __init__(self, db: AsyncSession, states: StateStore = state_store):
        self.db = db
        self.states = states
        self.user_service = UserService(db)
        self.tree_service = TreeService(db)
        self.member_service = MemberService(db)
        self.merge_service = MergeService(db)
        self.invite_service = InviteService(db)

    async def handle_message(self, from_number: str, body: str) -> str:
        phone = normalize_phone(from_number.replace("whatsapp:", ""))
        user = await self.user_service.get_or_create_user(phone)
        response = MessagingResponse()
        body = (body or "").strip()

        if body.lower() == "reset":
            self.states.clear(user.id)
            response.message(MAIN_MENU)
            return str(response)

        state = self.states.get(user.id)
        try:
            if state is None:
                await self.handle_main_menu(user, body, response)
            elif state.action == Action.ADD_MEMBER:
                await self.handle_add_member(user, state, body, response)
            elif state.action == Action.REMOVE_MEMBER:
                await self.handle_remove_member(user, body, response)
            elif state.action == Action.JOIN_TREE:
                await self.handle_join(user, body, response)
            elif state.action == Action.MERGE_TREE:
                await self.handle_merge(user, state, body, response)
        except FamilyTreeError as e:
            logger.warning(f"{e.kind.value} for user {user.id}: {e.message}")
            response.message(str(e) if e.kind == ErrorKind.VALIDATION else ERROR_PROMPTS.get(e.kind, GENERIC_ERROR))
        except Exception as e:
            logger.exception(f"Error handling message: {e}")
            self.states.clear(user.id)
            response.message(GENERIC_ERROR)

        return str(response)

    async def handle_main_menu(self, user: User, body: str, response: MessagingResponse):
        choice = body
        tree, role = await self.tree_service.get_active_tree(user.id)

        if choice == "1":
            if not tree:
                response.message("You don't have a tree yet. Select 'Add Member' to start!")
                return
            members = await self.member_service.get_members_by_tree(tree.id)
            edges = await self.member_service.get_edges_by_tree(tree.id)
            response.message(f"🌳 *{tree.name}*\n\n" + generate_text_tree(members, edges))

        elif choice == "2":
            if tree and role not in EDIT_ROLES:
                response.message("🔒 You are a Viewer. You cannot add members.")
                return
            self.states.set(user.id, ConversationState(Action.ADD_MEMBER, Step.SELECT_RELATION))
            response.message(RELATION_MENU)

        elif choice == "3":
            if not tree:
                response.message("No tree found.")
                return
            if role not in EDIT_ROLES:
                response.message("🔒 You are a Viewer. You cannot remove members.")
                return
            members = await self.member_service.get_members_by_tree(tree.id)
            if not members:
                response.message("No members to remove.")
                return
            self.states.set(user.id, ConversationState(Action.REMOVE_MEMBER, Step.SELECT_MEMBER))
            response.message("Enter the ID of the member to remove:\n" + self._member_list(members))

        elif choice == "4":
            if not tree:
                response.message("You do not have a tree to share.")
            elif role != Role.ADMIN:
                response.message("🔒 Only the tree admin can invite others.")
            else:
                url, invite = await self.invite_service.create_invite(tree.id)
                response.message(
                    f"✅ Invite created. Share this link (valid for 7 days):\n{url}\n\nCode: {invite.id}"
                )

        elif choice == "5":
            self.states.set(user.id, ConversationState(Action.JOIN_TREE, Step.ENTER_TOKEN))
            response.message("Enter the invite code or link:")

        elif choice == "6":
            await self.start_merge(user, tree, role, response)

        elif choice == "7":
            merges = await self.merge_service.list_pending_for(user.id)
            if not merges:
                response.message("No pending merge requests.")
                return
            lines = ["Pending merge requests. Enter the ID to review:"]
            for merge in merges:
                lines.append(f"{merge.id}. tree {merge.source_tree_id} ➡️ tree {merge.target_tree_id}")
            self.states.set(user.id, ConversationState(Action.MERGE_TREE, Step.CONFIRM_MERGE))
            response.message("\n".join(lines))

        elif choice == "8":
            response.message("Send 'reset' anytime to return to the main menu.")

        elif choice.lower() in ["hi", "hello", "menu", "start"]:
            response.message(MAIN_MENU)
        else:
            response.message("Invalid option. Send 'menu' to see options.")

    # --- ADD MEMBER FLOW ---
    async def handle_add_member(self, user: User, state: ConversationState, body: str, response: MessagingResponse):
        data = state.data

        if state.step == Step.SELECT_RELATION:
            relation_type = validate_relation_type(body)
            if data.name and data.birth_year:
                # Retry after an incompatible relation keeps name and year
                self.states.update(user.id, Step.SELECT_RELATED_MEMBER, relation_type=relation_type)
                await self.prompt_related_member(user, relation_type, response)
            else:
                self.states.update(user.id, Step.ENTER_NAME, relation_type=relation_type)
                response.message(f"Enter the full name of the {relation_name(relation_type).lower()}:")

        elif state.step == Step.ENTER_NAME:
            name = validate_full_name(body)
            self.states.update(user.id, Step.ENTER_BIRTH_YEAR, name=name)
            response.message("Enter the birth year (e.g. 1990):")

        elif state.step == Step.ENTER_BIRTH_YEAR:
            birth_year = validate_birth_year(body)
            state = self.states.update(user.id, Step.SELECT_RELATED_MEMBER, birth_year=birth_year)
            tree, _ = await self.tree_service.get_or_create_tree(user)
            members = await self.member_service.get_members_by_tree(tree.id)
            if not members:
                await self.finalize_add_member(user, state, response)
            else:
                await self.prompt_related_member(user, state.data.relation_type, response, members)

        elif state.step == Step.SELECT_RELATED_MEMBER:
            try:
                anchor_id = int(body)
            except ValueError:
                response.message("Invalid ID. Please enter a number.")
                return
            state = self.states.update(user.id, Step.SELECT_RELATED_MEMBER, selected_member_id=anchor_id)
            await self.finalize_add_member(user, state, response)

    async def prompt_related_member(self, user, relation_type, response, members=None):
        if members is None:
            tree, _ = await self.tree_service.get_active_tree(user.id)
            members = await self.member_service.get_members_by_tree(tree.id) if tree else []
        response.message(
            f"Who is this {relation_name(relation_type).lower()} related to? Enter the ID of the relative:\n"
            + self._member_list(members)
        )

    async def finalize_add_member(self, user: User, state: ConversationState, response: MessagingResponse):
        data = state.data
        anchor_id = data.selected_member_id
        tree, role = await self.tree_service.get_or_create_tree(user)
        if role not in EDIT_ROLES:
            self.states.clear(user.id)
            response.message("Permission denied.")
            return

        try:
            if anchor_id is None:
                member = await self.member_service.create_member(
                    user_id=user.id,
                    tree_id=tree.id,
                    full_name=data.name,
                    relation_type=data.relation_type,
                    birth_year=data.birth_year,
                )
            else:
                member = await self.member_service.add_relative(
                    user_id=user.id,
                    anchor_id=anchor_id,
                    full_name=data.name,
                    relation_type=data.relation_type,
                    birth_year=data.birth_year,
                    tree_id=tree.id,
                )
        except FamilyTreeError as e:
            if e.kind == ErrorKind.INVALID_RELATION:
                self.states.update(user.id, Step.SELECT_RELATION)
                response.message(ERROR_PROMPTS[e.kind] + "\n\n" + RELATION_MENU)
                return
            raise

        self.states.clear(user.id)
        response.message(
            f"✅ Added {member.full_name} to the tree!\n"
            f"👤 {relation_name(member.relation_type)}, born {member.birth_year}"
        )
        response.message(MAIN_MENU)

    # --- REMOVE MEMBER FLOW ---
    async def handle_remove_member(self, user: User, body: str, response: MessagingResponse):
        try:
            member_id = int(body)
        except ValueError:
            response.message("Invalid ID. Please enter a number.")
            return
        tree, role = await self.tree_service.get_active_tree(user.id)
        member = await self.member_service.get_member(member_id)
        if not tree or not member or member.tree_id != tree.id:
            response.message("Member not found in your tree.")
            return
        if role not in EDIT_ROLES:
            self.states.clear(user.id)
            response.message("Permission denied.")
            return
        await self.member_service.delete_member(member_id)
        self.states.clear(user.id)
        response.message(f"✅ Removed {member.full_name}.")
        response.message(MAIN_MENU)

    # --- JOIN FLOW ---
    async def handle_join(self, user: User, body: str, response: MessagingResponse):
        token = body.rstrip("/").rsplit("/", 1)[-1]
        try:
            access = await self.invite_service.accept_invite(token, user.id)
        finally:
            self.states.clear(user.id)
        tree = await self.tree_service.get_tree_by_id(access.tree_id)
        response.message(f"✅ You joined {tree.name} as {access.role.value.title()}.")

    # --- MERGE FLOW ---
    async def start_merge(self, user: User, tree, role, response: MessagingResponse):
        if not tree:
            response.message("You do not have a tree.")
            return
        if role != Role.ADMIN:
            response.message("🔒 Only the tree admin can merge trees.")
            return
        others = [t for t in await self.tree_service.get_user_trees(user.id) if t.id != tree.id]
        if not others:
            response.message("You need access to another tree to merge with.")
            return
        self.states.set(user.id, ConversationState(Action.MERGE_TREE, Step.SELECT_TARGET_TREE))
        lines = [f"Merge *{tree.name}* into which tree? Enter the ID:"]
        for other in others:
            lines.append(f"{other.id}. {other.name}")
        response.message("\n".join(lines))

    async def handle_merge(self, user: User, state: ConversationState, body: str, response: MessagingResponse):
        if state.step == Step.SELECT_TARGET_TREE:
            try:
                target_tree_id = int(body)
            except ValueError:
                response.message("Invalid ID. Please enter a number.")
                return
            source, _ = await self.tree_service.get_active_tree(user.id)
            if await self.tree_service.get_user_role(target_tree_id, user.id) is None:
                response.message("Tree not found.")
                return

            shared = await self.merge_service.find_shared_ancestors(source.id, target_tree_id)
            if not shared:
                self.states.clear(user.id)
                response.message("❌ These trees have no shared ancestors, so they cannot be merged.")
                return

            # TODO: ask the target tree's admin instead once two-party approval exists
            merge = await self.merge_service.request_merge(source.id, target_tree_id, user.id, user.id)
            self.states.update(user.id, Step.CONFIRM_MERGE, target_tree_id=target_tree_id, merge_id=merge.id)
            names = ", ".join(f"{pair.source_member.full_name} ({pair.source_member.birth_year})" for pair in shared)
            response.message(
                f"Found {len(shared)} shared ancestor(s): {names}\n\n"
                "Reply 'yes' to merge or 'no' to cancel."
            )

        elif state.step == Step.CONFIRM_MERGE:
            answer = body.lower()
            if state.data.merge_id is None:
                # Picked from the pending list
                try:
                    merge_id = int(body)
                except ValueError:
                    response.message("Invalid ID. Please enter a number.")
                    return
                self.states.update(user.id, Step.CONFIRM_MERGE, merge_id=merge_id)
                response.message("Reply 'yes' to merge or 'no' to reject.")
                return

            try:
                if answer == "yes":
                    await self.merge_service.approve_merge(state.data.merge_id, user.id)
                    response.message("✅ Trees merged successfully!")
                elif answer == "no":
                    await self.merge_service.reject_merge(state.data.merge_id, user.id)
                    response.message("Merge cancelled.")
                else:
                    response.message("Reply 'yes' or 'no'.")
                    return
            finally:
                if answer in ("yes", "no"):
                    self.states.clear(user.id)
            response.message(MAIN_MENU)

    @staticmethod
    def _member_list(members) -> str:
        return "\n".join(f"{m.id}. {m.full_name} ({m.birth_year or '?'})" for m in members)
