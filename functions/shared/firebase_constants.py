# Copyright 2025 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# ==============================================================================

# Firestore collection names shared by the web client, the API and the
# Cloud Functions.
USERS_COLLECTION = "users"
ROUNDS_COLLECTION = "rounds"
PICKS_COLLECTION = "picks"
LEGACY_PICKS_COLLECTION = "userPicks"
QUESTION_STATUS_COLLECTION = "questionStatus"
COMMENTS_COLLECTION = "comments"
COMMENT_ITEMS_COLLECTION = "items"
LEAGUES_COLLECTION = "leagues"
LEAGUE_MEMBERS_COLLECTION = "members"
VENUE_LEAGUES_COLLECTION = "venueLeagues"
GAME_LOCKS_COLLECTION = "gameLocks"
PANIC_COLLECTION = "panic"
FREE_KICK_USES_COLLECTION = "freeKickUses"
CONFIG_COLLECTION = "config"
BBL_MATCHES_COLLECTION = "bblMatches"
JOBS_COLLECTION = "jobs"


def season_config_doc_id(season: int) -> str:
    return f"season-{season}"
