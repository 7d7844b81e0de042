"""Table layout of the tabular database.

Column order here is the header row written by ``setup_database``. Readers
never rely on it: they look columns up by header name.
"""

SCHEMA_VERSION = 1

USERS = "App_Users_Master"
PROJECTS = "Project_List"
CONVERSATIONS = "Conversation_Records"
CODE_CATALOG = "Code_Catalog_Log"
UI_PROTOTYPES = "UI_Prototypes_Log"
DOCUMENT_CATALOG = "Document_Catalog_Log"
ACTIVITY_LOG = "User_Activity_Log"
ERRORS = "System_Errors"
CONFIG = "Config_Settings"
COACHING_REPORTS = "Daily_Coaching_Reports"

SCHEMA = {
    USERS: ["User_ID", "Display_Name", "Role", "Created_At", "Updated_At"],
    PROJECTS: ["Project_ID", "Project_Name", "Created_By_User_ID", "Created_At", "Last_Activity_At"],
    CONVERSATIONS: [
        "Record_ID", "Project_Name", "Doc_File_ID", "Doc_File_Name", "Doc_File_URL",
        "Char_Count", "File_Size_MB", "Sequence_Number", "Previous_Doc_File_ID",
        "Created_By", "Created_At", "Last_Updated_At",
    ],
    CODE_CATALOG: [
        "Code_ID", "Code_Name", "Project_Name", "Code_File_ID", "Code_File_URL",
        "Code_Type", "Generated_By_AI_Timestamp", "Requested_By_User_ID", "Status", "Updated_At",
    ],
    UI_PROTOTYPES: [
        "UI_ID", "UI_Name", "Project_Name", "Code_File_ID", "Code_File_URL",
        "Code_Type", "Generated_By_AI_Timestamp", "Requested_By_User_ID", "Status", "Updated_At",
    ],
    DOCUMENT_CATALOG: [
        "Doc_ID", "Doc_Name", "Project_Name", "File_ID", "File_URL",
        "Doc_Type", "Version", "AI_Generated_Summary", "Updated_At",
    ],
    ACTIVITY_LOG: [
        "Activity_ID", "User_ID", "Project_ID", "Activity_Type", "Activity_Details",
        "Timestamp", "AI_API_Call_Count", "AI_API_Token_Count",
    ],
    ERRORS: ["Error_ID", "Timestamp", "Function_Name", "Error_Message", "User_ID"],
    CONFIG: ["Setting_Name", "Setting_Value", "Description", "Data_Type", "Is_Editable_By_Admin"],
    COACHING_REPORTS: ["Report_ID", "User_ID", "Report_Date", "Report_Content"],
}

ROLE_ADMIN = "Admin"
ROLE_USER = "User"


def build_row(table_name: str, values: dict) -> list:
    """Lay out ``values`` (keyed by column name) in the table's header order."""
    return [values.get(column, "") for column in SCHEMA[table_name]]
