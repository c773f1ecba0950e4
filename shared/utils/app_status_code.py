class AppStatusCode:
    DATA_RETRIEVED_SUCCESSFULLY = "100"
    OPERATION_SUCCESSFUL = "101"

    INVALID_INPUT = "400"
    UNAUTHORIZED = "401"
    FORBIDDEN = "403"
    NOT_FOUND = "404"
    CONFLICT = "409"
    OPERATION_FAILED = "500"

    # billing
    INVALID_BILLING_PERIOD = "410"
    BILL_ALREADY_PAID = "411"
    BILL_NOT_PAID = "412"
    INVALID_BILL_TRANSITION = "413"
    GENERATION_IN_PROGRESS = "414"
