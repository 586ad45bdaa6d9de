# WebSocket event type definitions.
# Every frame is a JSON object whose "type" key holds one of these names.

# Inbound (client -> relay)
JOIN_CHANNEL = "joinChannel"
SEND_MESSAGE = "sendMessage"
EDIT_MESSAGE = "editMessage"
DELETE_MESSAGE = "deleteMessage"
ADD_REACTION = "addReaction"
REMOVE_REACTION = "removeReaction"
VOTE_PIN = "votePin"
VOTE_KICK = "voteKick"
VOTE_LANGUAGE = "voteLanguage"
NOTIFY_TYPING = "notifyTyping"
SEND_PRIVATE_MESSAGE = "sendPrivateMessage"
MINT_TOKEN = "mintToken"
UPDATE_PRESENCE = "updatePresence"
GET_GAMES = "getGames"
SEARCH_USERS = "searchUsers"
PRESENCE_HEARTBEAT = "presence.heartbeat"
GET_GROUPS = "getGroups"
CREATE_GROUP = "createGroup"
SEND_GROUP_MESSAGE = "sendGroupMessage"

# Outbound (relay -> client)
CHANNEL_SNAPSHOT = "channelSnapshot"
PARTICIPANTS_CHANGED = "participantsChanged"
RECEIVE_MESSAGE = "receiveMessage"
MESSAGE_UPDATED = "messageUpdated"
PIN_VOTE_STATE = "pinVoteState"
PINNED_MESSAGE_CHANGED = "pinnedMessageChanged"
KICK_VOTE_STATE = "kickVoteState"
KICKED = "kicked"
LANGUAGE_VOTE_STATE = "languageVoteState"
LANGUAGE_CHANGED = "languageChanged"
TYPING_INDICATOR = "typingIndicator"
RECEIVE_PRIVATE_MESSAGE = "receivePrivateMessage"
TOKEN_MINTED = "tokenMinted"
GAMES_LIST = "gamesList"
SEARCH_RESULTS = "searchResults"
BANNED = "banned"
AUTH_FAILED = "authFailed"
USER_GROUPS = "userGroups"
GROUP_CREATED = "groupCreated"
RECEIVE_GROUP_MESSAGE = "receiveGroupMessage"
