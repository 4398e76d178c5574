users_pk = 'users_{company_id}'
users_sk = '{user_id}'

restaurants_pk = 'restaurants_{company_id}'
restaurants_sk = '{restaurant_id}'

orders_pk = 'orders_{company_id}'
orders_sk = '{restaurant_id}_{order_id}'

ratings_pk = 'ratings_{company_id}_{restaurant_id}'
ratings_sk = '{order_id}'
